"""
State enums and transition tables for the order ledger.

The lifecycle status and the payment status are independent axes, each
driven by django-fsm transitions whose sources are derived from the tables
in orders.state_machines.transitions.
"""

from orders.state_machines.states import (
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentOutcome,
    PaymentStatus,
    ProviderPaymentStatus,
)
from orders.state_machines.transitions import (
    ORDER_STATUS_TRANSITIONS,
    ORDER_STATUS_REGRESSIONS,
    PAYMENT_STATUS_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    can_regress,
    can_transition,
    sources_for,
)

__all__ = [
    "ORDER_STATUS_REGRESSIONS",
    "ORDER_STATUS_TRANSITIONS",
    "OrderStatus",
    "OrderType",
    "PAYMENT_STATUS_TRANSITIONS",
    "PaymentMethod",
    "PaymentOutcome",
    "PaymentStatus",
    "ProviderPaymentStatus",
    "TERMINAL_ORDER_STATUSES",
    "can_regress",
    "can_transition",
    "sources_for",
]
