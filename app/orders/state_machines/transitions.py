"""
Transition tables for the order state machines.

The tables are the single source of truth: the django-fsm decorators on
Order take their ``source`` lists from ``sources_for`` and OrderService checks
``can_transition``/``can_regress`` before dispatching.
"""

from __future__ import annotations

from orders.state_machines.states import OrderStatus, PaymentStatus

ORDER_STATUS_FLOW: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
)

TERMINAL_ORDER_STATUSES: frozenset[str] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
)


def _build_forward_table() -> dict[str, frozenset[str]]:
    table: dict[str, frozenset[str]] = {}
    for index, status in enumerate(ORDER_STATUS_FLOW):
        if status in TERMINAL_ORDER_STATUSES:
            table[status] = frozenset()
            continue
        table[status] = frozenset(ORDER_STATUS_FLOW[index + 1 :]) | {
            OrderStatus.CANCELLED
        }
    table[OrderStatus.CANCELLED] = frozenset()
    return table


def _build_regression_table() -> dict[str, frozenset[str]]:
    # Staff overrides may step back, but never out of or into a terminal state
    open_flow = [s for s in ORDER_STATUS_FLOW if s not in TERMINAL_ORDER_STATUSES]
    return {
        status: frozenset(open_flow[:index])
        for index, status in enumerate(open_flow)
    }


ORDER_STATUS_TRANSITIONS: dict[str, frozenset[str]] = _build_forward_table()
ORDER_STATUS_REGRESSIONS: dict[str, frozenset[str]] = _build_regression_table()

PAYMENT_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ORDER_STATUS_TRANSITIONS.get(current, frozenset())


def can_regress(current: str, target: str) -> bool:
    return target in ORDER_STATUS_REGRESSIONS.get(current, frozenset())


def sources_for(target: str, table: dict[str, frozenset[str]] | None = None) -> list[str]:
    """
    States from which ``target`` is reachable in one step.

    Example:
        >>> sources_for(OrderStatus.PREPARING)
        ['pending', 'confirmed']
    """
    table = ORDER_STATUS_TRANSITIONS if table is None else table
    return [str(state) for state, targets in table.items() if target in targets]
