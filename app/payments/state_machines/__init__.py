"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    SecurityCheckOutcome,
    SecuritySettingType,
    WebhookEventStatus,
    WithdrawalMethod,
    WithdrawalStatus,
)

__all__ = [
    "SecurityCheckOutcome",
    "SecuritySettingType",
    "WebhookEventStatus",
    "WithdrawalMethod",
    "WithdrawalStatus",
]
