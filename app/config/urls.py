"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/orders/                - Order ledger
        {id}/                      - Order detail
        {id}/status/               - Status transition
        {id}/mark-paid/            - Manual payment (cash, card, ...)
        {id}/refund/               - Refund a paid order
    /api/v1/payments/              - Payment endpoints
        webhooks/nkwa/             - Nkwa Pay notification endpoint (POST)
        collect/                   - Start a mobile-money collection
        status/{transaction_id}/   - Stored payment state
        withdrawals/               - Withdrawal batches (list/create)
        withdrawals/{id}/          - Batch detail
        withdrawals/eligible/      - Orders eligible for a batch
        withdrawals/summary/       - Totals over a date range
        security-code/             - Security Gate status and management
    /api/v1/realtime/              - Notification Hub
        stats/                     - Connection statistics (admin only)
    /ws/orders/?restaurant_id=     - Order events WebSocket (see config.asgi)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Orders
    path("orders/", include("orders.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # Real-time
    path("realtime/", include("realtime.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Restaurant Payments Admin"
admin.site.site_title = "Restaurant Payments"
admin.site.index_title = "Orders, payments and withdrawals"
