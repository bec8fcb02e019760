"""
ViewSets for the orders API.

URL Structure:
    /api/v1/orders/                       GET (list), POST (create)
    /api/v1/orders/{id}/                  GET
    /api/v1/orders/{id}/status/           POST
    /api/v1/orders/{id}/mark-paid/        POST
    /api/v1/orders/{id}/refund/           POST

Design Decisions:
    - All state changes go through OrderService
    - Domain errors (InvalidTransition, NegativeAmount, StaleRecordError) are
      rendered by core.exception_handler
    - Querysets are limited to restaurants the user is staff of
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orders.models import Order
from orders.serializers import (
    ManualPaymentSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
)
from orders.services import OrderService
from restaurants.models import Restaurant, Table
from restaurants.permissions import IsRestaurantStaff


@extend_schema_view(
    list=extend_schema(
        operation_id="list_orders",
        summary="List orders",
        tags=["Orders"],
        parameters=[
            OpenApiParameter("restaurant_id", OpenApiTypes.UUID),
            OpenApiParameter("status", OpenApiTypes.STR),
            OpenApiParameter("payment_status", OpenApiTypes.STR),
        ],
    ),
    retrieve=extend_schema(
        operation_id="get_order",
        summary="Get order",
        tags=["Orders"],
    ),
    create=extend_schema(
        operation_id="create_order",
        summary="Place order",
        tags=["Orders"],
        request=OrderCreateSerializer,
        responses={201: OrderSerializer},
    ),
)
class OrderViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for orders of the restaurants the user works for.

    status:
        Move the order through its lifecycle.
    mark_paid:
        Staff payment override (cash, counter, or confirmation by hand).
    refund:
        Mark a paid order refunded.
    """

    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated, IsRestaurantStaff]

    def get_queryset(self):
        queryset = (
            Order.objects.filter(
                restaurant__staff__user=self.request.user,
                restaurant__staff__is_active=True,
            )
            .prefetch_related("items")
            .order_by("-created_at")
        )
        params = self.request.query_params
        if params.get("restaurant_id"):
            queryset = queryset.filter(restaurant_id=params["restaurant_id"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("payment_status"):
            queryset = queryset.filter(payment_status=params["payment_status"])
        return queryset

    def create(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        restaurant = get_object_or_404(Restaurant, id=data["restaurant_id"])
        table = None
        if data.get("table_id"):
            table = get_object_or_404(Table, id=data["table_id"], restaurant=restaurant)

        order = OrderService.create(
            restaurant=restaurant,
            line_items=[dict(item) for item in data["items"]],
            table=table,
            order_type=data["order_type"],
            payment_method=data["payment_method"],
            customer_name=data["customer_name"],
            customer_phone=data["customer_phone"],
            customer_email=data["customer_email"],
            customer_notes=data["customer_notes"],
        )
        order = Order.objects.prefetch_related("items").get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="transition_order_status",
        summary="Change order status",
        tags=["Orders"],
        request=OrderStatusSerializer,
        responses={200: OrderSerializer},
    )
    @action(detail=True, methods=["post"], url_path="status")
    def transition(self, request, pk=None):
        order = self.get_object()
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.transition_status(
            order,
            serializer.validated_data["status"],
            allow_regression=serializer.validated_data["force"],
            expected_version=serializer.validated_data.get("version"),
        )
        return Response(OrderSerializer(order).data)

    @extend_schema(
        operation_id="mark_order_paid",
        summary="Record a manual payment",
        tags=["Orders"],
        request=ManualPaymentSerializer,
        responses={200: OrderSerializer},
    )
    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        order = self.get_object()
        serializer = ManualPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.record_manual_payment(
            order,
            method=serializer.validated_data["payment_method"],
            amount=serializer.validated_data.get("amount"),
            staff_user=request.user,
            note=serializer.validated_data["note"],
        )
        return Response(OrderSerializer(order).data)

    @extend_schema(
        operation_id="refund_order",
        summary="Refund order",
        tags=["Orders"],
        request=None,
        responses={200: OrderSerializer},
    )
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        order = self.get_object()
        order = OrderService.refund(order)
        return Response(OrderSerializer(order).data)
