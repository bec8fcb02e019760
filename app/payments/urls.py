"""
URL configuration for the payments app.

Routes:
    - POST /webhooks/nkwa/ - Nkwa Pay notification endpoint
    - POST /collect/ - Start a mobile-money collection
    - GET /status/<transaction_id>/ - Stored payment state
    - /withdrawals/ - Withdrawal batches (list, create, eligible, eligible-summary,
      summary, disburse)
    - GET|POST /security-code/ - Security Gate status and management

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from payments.views import (
    CollectPaymentView,
    PaymentStatusView,
    SecurityCodeView,
    WithdrawalViewSet,
)
from payments.webhooks.views import nkwa_webhook

router = SimpleRouter()
router.register(r"withdrawals", WithdrawalViewSet, basename="withdrawal")

app_name = "payments"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/nkwa/", nkwa_webhook, name="nkwa_webhook"),
    # Collection
    path("collect/", CollectPaymentView.as_view(), name="collect"),
    path("status/<str:transaction_id>/", PaymentStatusView.as_view(), name="payment_status"),
    # Withdrawals
    path("security-code/", SecurityCodeView.as_view(), name="security_code"),
    path("", include(router.urls)),
]
