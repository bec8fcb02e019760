"""
Payment domain models.

- PaymentWithdrawal: Authorized settlement batch of service charges
- SecuritySetting: Hashed per-restaurant withdrawal security code
- SecurityCodeChange: Audit trail of security code rotations
- WebhookEvent: Received provider notifications
"""

from payments.models.security import SecurityCodeChange, SecuritySetting
from payments.models.webhook_event import WebhookEvent
from payments.models.withdrawal import PaymentWithdrawal, generate_withdrawal_number

__all__ = [
    "PaymentWithdrawal",
    "SecurityCodeChange",
    "SecuritySetting",
    "WebhookEvent",
    "generate_withdrawal_number",
]
