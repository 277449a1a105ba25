"""
Shared pytest fixtures for the billing app.

Fixtures here are visible to billing/tests, billing/webhooks/tests and
billing/adapters/tests. Gateway calls are replaced by a MagicMock shaped
like AsaasAdapter so tests control exactly what the gateway returns or
raises.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from billing.adapters import AsaasAdapter, CustomerResult, SubscriptionResult
from billing.models import GatewayConfiguration
from billing.tests.factories import (
    ClientFactory,
    GatewayConfigurationFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
    UserFactory,
)


# =============================================================================
# User and Client Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """A second user, for ownership checks."""
    return UserFactory()


@pytest.fixture
def billing_client(db, user):
    """A client owned by the test user, not yet registered at the gateway."""
    return ClientFactory(owner=user)


@pytest.fixture
def api_client(user):
    """DRF API client authenticated as the test user."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# =============================================================================
# Subscription Fixtures
# =============================================================================


@pytest.fixture
def subscription(db, billing_client):
    """An active subscription registered at the gateway as sub_test_123."""
    return SubscriptionFactory(
        client=billing_client,
        owner=billing_client.owner,
        external_subscription_id="sub_test_123",
    )


@pytest.fixture
def pending_payment(db, subscription):
    """A pending charge of the subscription, pay_test_123."""
    return SubscriptionPaymentFactory(
        subscription=subscription,
        external_payment_id="pay_test_123",
    )


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway():
    """
    Mock gateway adapter with successful defaults.

    - create_customer returns cus_new_123
    - create_subscription returns sub_new_123
    - cancel_subscription returns True
    - iter_payments yields nothing
    - usable as a context manager that yields itself
    """
    mock = MagicMock(spec=AsaasAdapter)
    mock.__enter__.return_value = mock
    mock.__exit__.return_value = False
    mock.create_customer.return_value = CustomerResult(id="cus_new_123", name="Client")
    mock.create_subscription.return_value = SubscriptionResult(
        id="sub_new_123",
        customer_id="cus_new_123",
        status="ACTIVE",
        value=Decimal("100.00"),
        cycle="MONTHLY",
    )
    mock.cancel_subscription.return_value = True
    mock.iter_payments.return_value = iter([])
    return mock


@pytest.fixture
def gateway_configuration(db, user):
    """Active gateway configuration of the test user."""
    return GatewayConfigurationFactory(owner=user)


@pytest.fixture
def configured_gateway(gateway, gateway_configuration):
    """
    The mock gateway, handed out for the test user's configuration.

    For code that opens the owner's gateway itself (views, tasks).
    """
    with patch.object(GatewayConfiguration, "build_adapter", return_value=gateway):
        yield gateway
