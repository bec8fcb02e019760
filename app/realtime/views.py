"""
Debug view exposing the Notification Hub registry.

GET /api/v1/realtime/stats/ (staff only)

Counts are for the process that serves the request.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from realtime.hub import hub


class HubStatsView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_realtime_stats",
        summary="Connected client counts",
        tags=["Realtime"],
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        return Response(hub.get_stats())
