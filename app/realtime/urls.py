"""
URL configuration for the realtime app.

All URLs are prefixed with /api/v1/realtime/ in the main URL configuration.
WebSocket routes live in realtime.routing.
"""

from django.urls import path

from realtime.views import HubStatsView

app_name = "realtime"

urlpatterns = [
    path("stats/", HubStatsView.as_view(), name="stats"),
]
