"""
Tests for billing request serializers.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest

from billing.serializers import CancelSubscriptionSerializer, ProvisionSubscriptionSerializer

CARD = {
    "holder_name": "MARIA SILVA",
    "number": "4444 4444 4444 4444",
    "expiry_month": "12",
    "expiry_year": "2030",
    "ccv": "123",
}


@pytest.fixture
def data():
    return {
        "client_id": str(uuid.uuid4()),
        "subscription_type": "quarterly",
        "amount": "250.00",
        "billing_day": 5,
        "payment_method": "boleto",
    }


class TestProvisionSubscriptionSerializer:
    def test_builds_provision_request_with_defaults(self, data):
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert serializer.is_valid(), serializer.errors
        request = serializer.to_provision_request()

        assert str(request.client_id) == data["client_id"]
        assert request.amount == Decimal("250.00")
        assert request.billing_day == 5
        assert request.start_date is None
        assert request.description == ""
        assert request.auto_renew is True
        assert request.credit_card is None
        assert request.idempotency_key is None

    def test_credit_card_data_is_normalised(self, data):
        data.update(payment_method="credit_card", credit_card=CARD, start_date="2024-01-15")
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert serializer.is_valid(), serializer.errors
        request = serializer.to_provision_request()

        assert request.credit_card.number == "4444444444444444"
        assert request.credit_card.last_four == "4444"
        assert request.start_date == date(2024, 1, 15)

    def test_credit_card_method_requires_card(self, data):
        data["payment_method"] = "credit_card"
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert not serializer.is_valid()
        assert "credit_card" in serializer.errors

    def test_debit_card_is_not_provisionable(self, data):
        data["payment_method"] = "debit_card"
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert not serializer.is_valid()
        assert "payment_method" in serializer.errors

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("amount", "0.00"),
            ("amount", "-5"),
            ("billing_day", 0),
            ("billing_day", 32),
            ("subscription_type", "weekly"),
            ("client_id", "not-a-uuid"),
        ],
    )
    def test_rejects_invalid_values(self, data, field, value):
        data[field] = value
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert not serializer.is_valid()
        assert field in serializer.errors

    @pytest.mark.parametrize(
        ("field", "value"),
        [("number", "4444"), ("expiry_month", "13"), ("expiry_year", "30"), ("ccv", "12")],
    )
    def test_rejects_invalid_card(self, data, field, value):
        data.update(payment_method="credit_card", credit_card={**CARD, field: value})
        serializer = ProvisionSubscriptionSerializer(data=data)

        assert not serializer.is_valid()
        assert field in serializer.errors["credit_card"]


class TestCancelSubscriptionSerializer:
    def test_reason_is_optional(self):
        serializer = CancelSubscriptionSerializer(data={})

        assert serializer.is_valid()
        assert serializer.validated_data.get("reason", "") == ""
