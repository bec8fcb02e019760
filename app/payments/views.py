"""
DRF views for the payments app.

Endpoints:
    POST /api/v1/payments/collect/                        Start a mobile-money collection
    GET  /api/v1/payments/status/{transaction_id}/        Stored payment state (?refresh=true asks the provider)
    GET  /api/v1/payments/withdrawals/                    List batches
    POST /api/v1/payments/withdrawals/                    Authorize and settle
    GET  /api/v1/payments/withdrawals/{id}/               Batch detail
    GET  /api/v1/payments/withdrawals/eligible/           Orders that can be withdrawn
    GET  /api/v1/payments/withdrawals/eligible-summary/   Pending charges per method for one day
    POST /api/v1/payments/withdrawals/{id}/disburse/      Retry the payout of a processing batch
    GET  /api/v1/payments/withdrawals/summary/            Totals and daily breakdown
    GET  /api/v1/payments/security-code/                  Security Gate status
    POST /api/v1/payments/security-code/                  Provision or rotate the code
    POST /api/v1/payments/webhooks/nkwa/                  Provider notifications (payments.webhooks)

Security:
    - Everything except the webhook requires authentication
    - Every restaurant-scoped request is checked against the caller's
      staff memberships before any service is called
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ExternalServiceError, NotFoundError, PermissionDeniedError
from orders.models import Order
from payments.exceptions import SecurityCodeDenied, SecurityGateLocked
from payments.models import PaymentWithdrawal
from payments.serializers import (
    CollectPaymentResponseSerializer,
    CollectPaymentSerializer,
    EligibleOrderSerializer,
    EligibleQuerySerializer,
    EligibleSummaryQuerySerializer,
    EligibleSummarySerializer,
    PaymentStatusSerializer,
    PaymentWithdrawalSerializer,
    SecurityCodeStatusSerializer,
    SecurityCodeUpdateSerializer,
    WithdrawalCreateSerializer,
    WithdrawalSummaryQuerySerializer,
)
from payments.services import CollectionService, SecurityGate, WithdrawalService
from payments.state_machines import SecurityCheckOutcome, WithdrawalMethod
from restaurants.models import Restaurant, RestaurantStaff
from restaurants.permissions import IsRestaurantStaff

logger = logging.getLogger(__name__)


def get_member_restaurant(user, restaurant_id) -> Restaurant:
    """
    Return the restaurant if ``user`` is active staff of it.

    Raises:
        NotFoundError: Unknown restaurant
        PermissionDeniedError: User is not staff of it
    """
    try:
        restaurant = Restaurant.objects.filter(pk=restaurant_id).first()
    except (ValueError, DjangoValidationError):
        restaurant = None
    if restaurant is None:
        raise NotFoundError(
            "Restaurant not found",
            error_code="RESTAURANT_NOT_FOUND",
            details={"restaurant_id": str(restaurant_id)},
        )
    if not RestaurantStaff.is_member(user, restaurant.pk):
        raise PermissionDeniedError(
            "You are not a staff member of this restaurant.",
            error_code="NOT_RESTAURANT_STAFF",
        )
    return restaurant


# =============================================================================
# Collection
# =============================================================================


class CollectPaymentView(APIView):
    """
    Ask the provider to charge the customer's mobile-money account.

    POST /api/v1/payments/collect/

    Request body:
        {"order_id": "<uuid>", "phone_number": "2376XXXXXXXX", "amount": "1050.00"}

    The order stays pending until the provider notification arrives.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="collect_payment",
        summary="Start a mobile-money collection",
        tags=["Payments"],
        request=CollectPaymentSerializer,
        responses={202: CollectPaymentResponseSerializer},
    )
    def post(self, request):
        serializer = CollectPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = get_object_or_404(Order, pk=data["order_id"])
        get_member_restaurant(request.user, order.restaurant_id)

        result = CollectionService.collect(
            order,
            phone_number=data["phone_number"],
            amount=data.get("amount"),
            method=data["payment_method"],
        )
        if not result.success:
            raise ExternalServiceError(
                result.error or "Payment provider rejected the collection",
                error_code=result.error_code,
            )

        payment = result.data
        body = CollectPaymentResponseSerializer(
            {
                "transaction_id": payment.id,
                "status": payment.status,
                "reference": payment.reference or order.order_number,
                "amount": payment.amount,
            }
        ).data
        return Response(body, status=status.HTTP_202_ACCEPTED)


class PaymentStatusView(APIView):
    """
    GET /api/v1/payments/status/{transaction_id}/

    Reads the stored order snapshot. With ``?refresh=true`` the provider is
    asked for its view of the payment as well.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment_status",
        summary="Get payment status",
        tags=["Payments"],
        parameters=[OpenApiParameter("refresh", OpenApiTypes.BOOL)],
        responses={200: PaymentStatusSerializer},
    )
    def get(self, request, transaction_id: str):
        refresh = request.query_params.get("refresh", "").lower() in ("1", "true", "yes")
        payload = CollectionService.payment_status(transaction_id, refresh=refresh)
        restaurant_id = payload.pop("restaurant_id", None)
        if restaurant_id is not None:
            get_member_restaurant(request.user, restaurant_id)
        return Response(PaymentStatusSerializer(payload).data)


# =============================================================================
# Withdrawals
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_withdrawals",
        summary="List withdrawal batches",
        tags=["Withdrawals"],
        parameters=[
            OpenApiParameter("restaurant_id", OpenApiTypes.UUID),
            OpenApiParameter("payment_method", OpenApiTypes.STR),
            OpenApiParameter("status", OpenApiTypes.STR),
        ],
    ),
    retrieve=extend_schema(
        operation_id="get_withdrawal",
        summary="Get withdrawal batch",
        tags=["Withdrawals"],
    ),
    create=extend_schema(
        operation_id="create_withdrawal",
        summary="Authorize and settle a withdrawal",
        tags=["Withdrawals"],
        request=WithdrawalCreateSerializer,
        responses={201: PaymentWithdrawalSerializer},
    ),
)
class WithdrawalViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Withdrawal batches of the restaurants the user works for.

    eligible:
        Paid, unwithdrawn mobile-money orders for one UTC day and method.
    eligible_summary:
        Their count and sums per mobile-money class.
    disburse:
        Pays a processing batch out through the provider.
    summary:
        Lifetime totals plus a per-day breakdown.
    """

    serializer_class = PaymentWithdrawalSerializer
    permission_classes = [IsAuthenticated, IsRestaurantStaff]

    def get_queryset(self):
        queryset = PaymentWithdrawal.objects.filter(
            restaurant__staff__user=self.request.user,
            restaurant__staff__is_active=True,
        ).order_by("-created_at")
        params = self.request.query_params
        if params.get("restaurant_id"):
            queryset = queryset.filter(restaurant_id=params["restaurant_id"])
        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def create(self, request):
        serializer = WithdrawalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        restaurant = get_member_restaurant(request.user, data["restaurant_id"])
        orders = list(Order.objects.filter(pk__in=data["order_ids"]))
        missing = {str(pk) for pk in data["order_ids"]} - {str(o.pk) for o in orders}
        if missing:
            raise NotFoundError(
                "Some selected orders do not exist",
                error_code="ORDER_NOT_FOUND",
                details={"order_ids": sorted(missing)},
            )

        batch = WithdrawalService.authorize_and_settle(
            restaurant=restaurant,
            orders=orders,
            security_code=data["security_code"],
            authorized_by=request.user,
            role=data["authorized_role"],
            payment_method=data["payment_method"],
            withdrawal_date=data["withdrawal_date"],
            custom_role=data["custom_role"],
            notes=data["notes"],
            payment_phone_number=data["payment_phone_number"] or restaurant.phone_number,
            disburse=data["disburse"],
        )
        return Response(
            PaymentWithdrawalSerializer(batch).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="list_eligible_orders",
        summary="List orders eligible for withdrawal",
        tags=["Withdrawals"],
        parameters=[EligibleQuerySerializer],
        responses={200: EligibleOrderSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def eligible(self, request):
        query = EligibleQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        restaurant = get_member_restaurant(request.user, params["restaurant_id"])
        orders = WithdrawalService.list_eligible_orders(
            restaurant,
            params["date"],
            WithdrawalMethod(params["payment_method"]).match_pattern,
        )
        return Response(EligibleOrderSerializer(orders, many=True).data)

    @extend_schema(
        operation_id="get_eligible_summary",
        summary="Pending service charges per mobile-money class",
        tags=["Withdrawals"],
        parameters=[EligibleSummaryQuerySerializer],
        responses={200: EligibleSummarySerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="eligible-summary")
    def eligible_summary(self, request):
        query = EligibleSummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        restaurant = get_member_restaurant(request.user, params["restaurant_id"])
        summary = WithdrawalService.get_eligible_summary(restaurant, params["date"])
        return Response(EligibleSummarySerializer(summary, many=True).data)

    @extend_schema(
        operation_id="disburse_withdrawal",
        summary="Pay out a processing withdrawal",
        tags=["Withdrawals"],
        request=None,
        responses={200: PaymentWithdrawalSerializer},
    )
    @action(detail=True, methods=["post"])
    def disburse(self, request, pk=None):
        batch = WithdrawalService.disburse(self.get_object())
        return Response(PaymentWithdrawalSerializer(batch).data)

    @extend_schema(
        operation_id="get_withdrawal_summary",
        summary="Withdrawal totals and daily breakdown",
        tags=["Withdrawals"],
        parameters=[WithdrawalSummaryQuerySerializer],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=["get"])
    def summary(self, request):
        query = WithdrawalSummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        restaurant = get_member_restaurant(request.user, params["restaurant_id"])
        return Response(
            {
                "restaurant_id": str(restaurant.pk),
                "totals": WithdrawalService.get_restaurant_totals(restaurant),
                "daily": WithdrawalService.get_daily_summary(
                    restaurant, params["start"], params["end"]
                ),
            }
        )


# =============================================================================
# Security Gate
# =============================================================================


class SecurityCodeView(APIView):
    """
    Manage a restaurant's withdrawal security code.

    GET  /api/v1/payments/security-code/?restaurant_id=<uuid>
    POST /api/v1/payments/security-code/

    POST provisions the first code. Once a code exists, ``current_code`` must
    pass the gate (and counts as an attempt) before it is rotated.
    """

    permission_classes = [IsAuthenticated, IsRestaurantStaff]

    @extend_schema(
        operation_id="get_security_code_status",
        summary="Security code status",
        tags=["Withdrawals"],
        parameters=[OpenApiParameter("restaurant_id", OpenApiTypes.UUID, required=True)],
        responses={200: SecurityCodeStatusSerializer},
    )
    def get(self, request):
        restaurant = get_member_restaurant(
            request.user, request.query_params.get("restaurant_id")
        )
        return Response(SecurityCodeStatusSerializer(SecurityGate.status(restaurant)).data)

    @extend_schema(
        operation_id="set_security_code",
        summary="Provision or rotate the security code",
        tags=["Withdrawals"],
        request=SecurityCodeUpdateSerializer,
        responses={200: SecurityCodeStatusSerializer, 201: SecurityCodeStatusSerializer},
    )
    def post(self, request):
        serializer = SecurityCodeUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        restaurant = get_member_restaurant(request.user, data["restaurant_id"])

        if not SecurityGate.status(restaurant)["is_set"]:
            SecurityGate.provision(restaurant, data["new_code"], author=request.user)
            return Response(
                SecurityCodeStatusSerializer(SecurityGate.status(restaurant)).data,
                status=status.HTTP_201_CREATED,
            )

        decision = SecurityGate.verify(restaurant, data["current_code"])
        if decision.outcome == SecurityCheckOutcome.LOCKED:
            raise SecurityGateLocked(
                "Too many failed attempts; security code is locked",
                retry_after=decision.retry_after,
            )
        if decision.outcome == SecurityCheckOutcome.DENIED:
            raise SecurityCodeDenied(remaining_attempts=decision.remaining_attempts)

        SecurityGate.rotate(
            restaurant, data["new_code"], author=request.user, reason=data["reason"]
        )
        logger.info(
            "Security code rotated",
            extra={"restaurant_id": str(restaurant.pk), "user_id": request.user.pk},
        )
        return Response(SecurityCodeStatusSerializer(SecurityGate.status(restaurant)).data)
