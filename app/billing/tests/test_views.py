"""
Tests for billing API views.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from billing.adapters import AsaasAdapter
from billing.exceptions import GatewayError
from billing.models import GatewayConfiguration, Subscription
from billing.tests.factories import (
    ClientFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
)


@pytest.fixture(autouse=True)
def patched_gateway(configured_gateway):
    """Services built by the views open the mock gateway."""
    return configured_gateway


@pytest.fixture
def provision_payload(billing_client):
    return {
        "client_id": str(billing_client.id),
        "subscription_type": "monthly",
        "amount": "100.00",
        "billing_day": 10,
        "payment_method": "pix",
        "start_date": "2024-01-15",
    }


def gateway_routes(request: httpx.Request) -> httpx.Response:
    """Minimal gateway answering the calls provisioning and cancelling make."""
    routes = {
        ("POST", "/api/v3/customers"): {"id": "cus_http_1", "name": "Client"},
        ("POST", "/api/v3/subscriptions"): {
            "id": "sub_http_1",
            "customer": "cus_http_1",
            "status": "ACTIVE",
            "value": 100.0,
            "cycle": "MONTHLY",
        },
        ("GET", "/api/v3/payments"): {"data": [], "hasMore": False},
        ("DELETE", "/api/v3/subscriptions/sub_test_123"): {
            "deleted": True,
            "id": "sub_test_123",
        },
    }
    return httpx.Response(200, json=routes[(request.method, request.url.path)])


@pytest.fixture
def http_gateway():
    """A real adapter over a mock transport, handed out for the user's configuration."""
    adapter = AsaasAdapter(api_key="test_key", transport=httpx.MockTransport(gateway_routes))
    with patch.object(GatewayConfiguration, "build_adapter", return_value=adapter):
        yield adapter


# =============================================================================
# List / Provision
# =============================================================================


class TestSubscriptionListCreateView:
    @property
    def url(self):
        return reverse("billing:subscription-list")

    def test_requires_authentication(self, db):
        response = APIClient().get(self.url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_only_own_subscriptions(self, api_client, subscription, other_user):
        SubscriptionFactory(client__owner=other_user)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert [item["id"] for item in response.data] == [str(subscription.id)]

    def test_provision_returns_created(self, api_client, provision_payload):
        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["success"] is True
        assert response.data["subscription"]["external_subscription_id"] == "sub_new_123"
        assert response.data["subscription"]["status"] == "active"
        assert Subscription.objects.count() == 1

    def test_provision_with_used_idempotency_key_returns_ok(
        self, api_client, provision_payload
    ):
        provision_payload["idempotency_key"] = "req-42"
        first = api_client.post(self.url, provision_payload, format="json")

        second = api_client.post(self.url, provision_payload, format="json")

        assert second.status_code == status.HTTP_200_OK
        assert second.data["subscription"]["id"] == first.data["subscription"]["id"]

    def test_invalid_payload_returns_validation_error(self, api_client, provision_payload):
        provision_payload["amount"] = "0"
        provision_payload["billing_day"] = 40

        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert set(response.data["details"]) == {"amount", "billing_day"}

    def test_credit_card_requires_card_data(self, api_client, provision_payload):
        provision_payload["payment_method"] = "credit_card"

        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "credit_card" in response.data["details"]

    def test_unknown_client_returns_not_found(self, api_client, provision_payload, other_user):
        provision_payload["client_id"] = str(ClientFactory(owner=other_user).id)

        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CLIENT_NOT_FOUND"

    def test_gateway_rejection_returns_bad_gateway(
        self, api_client, provision_payload, patched_gateway
    ):
        patched_gateway.create_subscription.side_effect = GatewayError(
            "Invalid customer", status_code=400
        )

        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data["success"] is False
        assert response.data["error"] == "Invalid customer"
        assert Subscription.objects.count() == 0

    def test_persistence_failure_reports_compensation(
        self, api_client, provision_payload, patched_gateway
    ):
        with patch.object(
            Subscription.objects, "create", side_effect=DatabaseError("disk full")
        ):
            response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data["error_code"] == "SUBSCRIPTION_PERSISTENCE_FAILED"
        assert response.data["details"]["compensation"] == "cancelled"
        patched_gateway.cancel_subscription.assert_called_once_with("sub_new_123")

    def test_provision_closes_gateway_client(self, api_client, provision_payload, http_gateway):
        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["subscription"]["external_subscription_id"] == "sub_http_1"
        assert http_gateway._client.is_closed

    def test_provision_without_gateway_configuration_is_rejected(
        self, api_client, provision_payload, gateway_configuration, patched_gateway
    ):
        gateway_configuration.is_active = False
        gateway_configuration.save()

        response = api_client.post(self.url, provision_payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "GATEWAY_NOT_CONFIGURED"
        patched_gateway.create_customer.assert_not_called()
        assert Subscription.objects.count() == 0


# =============================================================================
# Detail
# =============================================================================


class TestSubscriptionDetailView:
    def test_returns_subscription_with_payments_and_history(
        self, api_client, subscription, pending_payment
    ):
        url = reverse("billing:subscription-detail", args=[subscription.id])

        response = api_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(subscription.id)
        assert response.data["client_name"] == subscription.client.name
        assert [p["external_payment_id"] for p in response.data["payments"]] == ["pay_test_123"]
        assert response.data["history"] == []

    def test_other_users_subscription_is_not_found(self, api_client, other_user):
        subscription = SubscriptionFactory(client__owner=other_user)
        url = reverse("billing:subscription-detail", args=[subscription.id])

        response = api_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "SUBSCRIPTION_NOT_FOUND"


# =============================================================================
# Cancel
# =============================================================================


class TestSubscriptionCancelView:
    def test_cancel_returns_success(self, api_client, subscription):
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        response = api_client.post(url, {"reason": "No longer needed"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "success": True,
            "message": "Subscription cancelled",
            "warnings": [],
        }
        assert Subscription.objects.get(pk=subscription.pk).is_cancelled

    def test_cancel_with_gateway_failure_returns_warning(
        self, api_client, subscription, patched_gateway
    ):
        patched_gateway.cancel_subscription.side_effect = GatewayError("Gateway down")
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        response = api_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["warnings"] == ["Gateway cancellation failed: Gateway down"]

    def test_unconfirmed_gateway_deletion_returns_warning(
        self, api_client, subscription, patched_gateway
    ):
        patched_gateway.cancel_subscription.return_value = False
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        response = api_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["warnings"] == ["Gateway did not confirm the cancellation"]

    def test_cancel_closes_gateway_client(self, api_client, subscription, http_gateway):
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        response = api_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["warnings"] == []
        assert http_gateway._client.is_closed

    def test_cancel_without_gateway_configuration_changes_nothing(
        self, api_client, subscription, gateway_configuration, patched_gateway
    ):
        gateway_configuration.delete()
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        response = api_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "GATEWAY_NOT_CONFIGURED"
        patched_gateway.cancel_subscription.assert_not_called()
        assert not Subscription.objects.get(pk=subscription.pk).is_cancelled

    def test_cancel_twice_returns_conflict(self, api_client, subscription):
        url = reverse("billing:subscription-cancel", args=[subscription.id])
        api_client.post(url, {}, format="json")

        response = api_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "SUBSCRIPTION_ALREADY_CANCELLED"

    def test_payments_survive_cancellation(self, api_client, subscription):
        payment = SubscriptionPaymentFactory(subscription=subscription)
        url = reverse("billing:subscription-cancel", args=[subscription.id])

        api_client.post(url, {}, format="json")

        assert subscription.payments.filter(pk=payment.pk).exists()
