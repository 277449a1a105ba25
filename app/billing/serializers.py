"""
DRF serializers for the billing app.

Provides:
- ProvisionSubscriptionSerializer: Validate a provisioning request
- CancelSubscriptionSerializer: Validate a cancellation request
- SubscriptionSerializer: Read-only subscription with payments and history
- SubscriptionPaymentSerializer: Read-only charge
- SubscriptionHistorySerializer: Read-only audit entry

Related files:
    - services/provisioning.py: ProvisionRequest
    - views.py: Billing API views
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from rest_framework import serializers

from billing.adapters import CreditCardDetails
from billing.models import Subscription, SubscriptionHistory, SubscriptionPayment
from billing.services import ProvisionRequest
from billing.state_machines import PaymentMethod, SubscriptionType

PROVISIONABLE_PAYMENT_METHODS = [
    (method.value, method.label)
    for method in (PaymentMethod.CREDIT_CARD, PaymentMethod.PIX, PaymentMethod.BOLETO)
]


class CreditCardSerializer(serializers.Serializer):
    """Card data, forwarded to the gateway and never stored."""

    holder_name = serializers.CharField(max_length=255)
    number = serializers.CharField(max_length=23)
    expiry_month = serializers.RegexField(r"^(0[1-9]|1[0-2])$")
    expiry_year = serializers.RegexField(r"^\d{4}$")
    ccv = serializers.RegexField(r"^\d{3,4}$")

    def validate_number(self, value: str) -> str:
        digits = "".join(ch for ch in value if ch.isdigit())
        if not 13 <= len(digits) <= 19:
            raise serializers.ValidationError("Invalid card number.")
        return digits


class ProvisionSubscriptionSerializer(serializers.Serializer):
    """
    Input for POST /api/v1/billing/subscriptions/.

    Usage:
        serializer = ProvisionSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provision_request = serializer.to_provision_request()
    """

    client_id = serializers.UUIDField()
    subscription_type = serializers.ChoiceField(choices=SubscriptionType.choices)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    billing_day = serializers.IntegerField(min_value=1, max_value=31)
    payment_method = serializers.ChoiceField(choices=PROVISIONABLE_PAYMENT_METHODS)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    start_date = serializers.DateField(required=False)
    auto_renew = serializers.BooleanField(required=False, default=True)
    idempotency_key = serializers.CharField(max_length=255, required=False)
    credit_card = CreditCardSerializer(required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["payment_method"] == PaymentMethod.CREDIT_CARD and not attrs.get("credit_card"):
            raise serializers.ValidationError(
                {"credit_card": ["Required for credit card subscriptions."]}
            )
        return attrs

    def to_provision_request(self) -> ProvisionRequest:
        data = self.validated_data
        card = data.get("credit_card")
        return ProvisionRequest(
            client_id=data["client_id"],
            subscription_type=data["subscription_type"],
            amount=data["amount"],
            billing_day=data["billing_day"],
            payment_method=data["payment_method"],
            start_date=data.get("start_date"),
            description=data.get("description", ""),
            credit_card=CreditCardDetails(**card) if card else None,
            idempotency_key=data.get("idempotency_key"),
            auto_renew=data.get("auto_renew", True),
        )


class CancelSubscriptionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class SubscriptionPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = SubscriptionPayment
        fields = [
            "id",
            "external_payment_id",
            "amount",
            "status",
            "due_date",
            "paid_date",
            "billing_period_start",
            "billing_period_end",
            "payment_method",
            "invoice_url",
            "retry_count",
            "next_retry_date",
        ]
        read_only_fields = fields


class SubscriptionHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = SubscriptionHistory
        fields = [
            "id",
            "event_type",
            "description",
            "external_event_id",
            "old_value",
            "new_value",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Read-only subscription for API responses.

    Card data is limited to the last four digits and the holder name.
    """

    client_name = serializers.CharField(source="client.name", read_only=True)
    payments = SubscriptionPaymentSerializer(many=True, read_only=True)
    history = SubscriptionHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "client",
            "client_name",
            "external_subscription_id",
            "subscription_type",
            "billing_cycle",
            "amount",
            "billing_day",
            "payment_method",
            "card_last_four",
            "card_holder_name",
            "description",
            "auto_renew",
            "status",
            "start_date",
            "next_due_date",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "payments",
            "history",
        ]
        read_only_fields = fields


class SubscriptionListSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source="client.name", read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "client",
            "client_name",
            "external_subscription_id",
            "subscription_type",
            "amount",
            "payment_method",
            "status",
            "next_due_date",
            "created_at",
        ]
        read_only_fields = fields
