"""
DRF views for the billing app.

Provides:
- SubscriptionListCreateView: List own subscriptions, provision a new one
- SubscriptionDetailView: Subscription with payments and history
- SubscriptionCancelView: Cancel a subscription

Related files:
    - services/: SubscriptionProvisioner, SubscriptionCancellationService
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/billing/subscriptions/ - List subscriptions
    POST /api/v1/billing/subscriptions/ - Provision subscription
    GET  /api/v1/billing/subscriptions/{id}/ - Subscription details
    POST /api/v1/billing/subscriptions/{id}/cancel/ - Cancel subscription
    POST /api/v1/billing/webhooks/asaas/ - Asaas webhook endpoint

Security:
    - All endpoints require authentication except the webhook
    - Users only see and act on their own subscriptions and clients
"""

from __future__ import annotations

import logging

from django.db.models import Prefetch
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from billing.exceptions import GatewayError
from billing.models import Subscription, SubscriptionHistory
from billing.serializers import (
    CancelSubscriptionSerializer,
    ProvisionSubscriptionSerializer,
    SubscriptionListSerializer,
    SubscriptionSerializer,
)
from billing.services import SubscriptionCancellationService, SubscriptionProvisioner

logger = logging.getLogger(__name__)


def error_response(error: BaseApplicationError) -> Response:
    """Map an application error to its HTTP status."""
    if isinstance(error, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ConflictError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, GatewayError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return Response({"success": False, **error.to_dict()}, status=status_code)


class SubscriptionListCreateView(APIView):
    """
    List or provision subscriptions.

    GET /api/v1/billing/subscriptions/
        Subscriptions owned by the current user, newest first.

    POST /api/v1/billing/subscriptions/
        Create the subscription at the gateway and store it locally.

    Response:
        201 Created: {"success": true, "subscription": {...}}
        200 OK: Same body, when the idempotency key was already used
        400 Bad Request: Validation error, or no gateway configuration
            for the account (GATEWAY_NOT_CONFIGURED)
        404 Not Found: Client not found
        502 Bad Gateway: Gateway rejected the request
        500 Internal Server Error: Local write failed after the gateway
            created the subscription (details report the compensation)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_subscriptions",
        summary="List subscriptions",
        responses={200: SubscriptionListSerializer(many=True)},
        tags=["Billing - Subscriptions"],
    )
    def get(self, request):
        subscriptions = Subscription.objects.filter(owner=request.user).select_related("client")
        serializer = SubscriptionListSerializer(subscriptions, many=True)
        return Response(serializer.data)

    @extend_schema(
        operation_id="provision_subscription",
        summary="Provision subscription",
        description=(
            "Creates the subscription at the payment gateway, then stores it. "
            "If storing fails, the gateway subscription is cancelled again."
        ),
        request=ProvisionSubscriptionSerializer,
        responses={
            201: OpenApiResponse(description="Subscription created"),
            400: OpenApiResponse(description="Validation error or gateway not configured"),
            404: OpenApiResponse(description="Client not found"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Billing - Subscriptions"],
    )
    def post(self, request):
        serializer = ProvisionSubscriptionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {
                    "success": False,
                    "error": "Invalid subscription request",
                    "error_code": "VALIDATION_ERROR",
                    "details": serializer.errors,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = SubscriptionProvisioner().provision(
                serializer.to_provision_request(), actor=request.user
            )
        except BaseApplicationError as e:
            logger.warning(
                f"Subscription provisioning failed: {e.message}",
                extra={"user_id": str(request.user.pk), "error_code": e.error_code},
            )
            return error_response(e)

        return Response(
            {"success": True, "subscription": result.to_dict()},
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class SubscriptionDetailView(APIView):
    """
    GET /api/v1/billing/subscriptions/{id}/

    Response:
        200 OK: Subscription with payments and history
        404 Not Found: Subscription doesn't exist or belongs to someone else
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription",
        summary="Get subscription details",
        responses={
            200: SubscriptionSerializer,
            404: OpenApiResponse(description="Subscription not found"),
        },
        tags=["Billing - Subscriptions"],
    )
    def get(self, request, subscription_id):
        subscription = (
            Subscription.objects.filter(owner=request.user, pk=subscription_id)
            .select_related("client")
            .prefetch_related(
                "payments",
                Prefetch("history", queryset=SubscriptionHistory.objects.order_by("created_at")),
            )
            .first()
        )
        if subscription is None:
            return error_response(
                NotFoundError("Subscription not found", error_code="SUBSCRIPTION_NOT_FOUND")
            )
        return Response(SubscriptionSerializer(subscription).data)


class SubscriptionCancelView(APIView):
    """
    POST /api/v1/billing/subscriptions/{id}/cancel/

    Request body:
        {"reason": "Moving to another provider"}  (optional)

    Response:
        200 OK: {"success": true, "message": ..., "warnings": [...]}
        400 Bad Request: No gateway configuration for the account
        404 Not Found: Subscription not found
        409 Conflict: Already cancelled
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel subscription",
        description=(
            "Cancels at the payment gateway, then locally. A gateway failure "
            "does not block the local cancellation; it is reported in warnings."
        ),
        request=CancelSubscriptionSerializer,
        responses={
            200: OpenApiResponse(description="Subscription cancelled"),
            400: OpenApiResponse(description="Gateway not configured"),
            404: OpenApiResponse(description="Subscription not found"),
            409: OpenApiResponse(description="Subscription already cancelled"),
        },
        tags=["Billing - Subscriptions"],
    )
    def post(self, request, subscription_id):
        serializer = CancelSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = SubscriptionCancellationService().cancel(
                subscription_id,
                reason=serializer.validated_data.get("reason"),
                actor=request.user,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            {
                "success": True,
                "message": "Subscription cancelled",
                "warnings": result.warnings,
            }
        )
