"""
Order ledger exceptions.

Exception Hierarchy:
    ConflictError
    └── InvalidTransition - Target status unreachable from the current one
    ValidationError
    ├── NegativeAmount - A computed total or captured payment is negative
    └── InvalidLineItem - Malformed line item (quantity, missing fields)
"""

from __future__ import annotations

from core.exceptions import ConflictError, ValidationError


class InvalidTransition(ConflictError):
    """
    Raised when an order cannot move to the requested status.

    Attributes:
        current: Status the order is in
        target: Status that was requested
    """

    default_error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, field: str = "status"):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move order {field} from {current} to {target}",
            details={"field": field, "current": current, "target": target},
        )


class NegativeAmount(ValidationError):
    default_error_code = "NEGATIVE_AMOUNT"


class InvalidLineItem(ValidationError):
    default_error_code = "INVALID_LINE_ITEM"
