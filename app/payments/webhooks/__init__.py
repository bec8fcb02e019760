"""
Webhook handling for Nkwa Pay payment notifications.

Notifications are verified (RSA signature + timestamp), recorded as
WebhookEvent rows and applied synchronously to the matching order.
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import nkwa_webhook

__all__ = [
    "dispatch_webhook",
    "nkwa_webhook",
    "register_handler",
]
