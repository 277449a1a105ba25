"""
Pytest fixtures for billing service tests.

Shared user, client, subscription and gateway fixtures live in
billing/conftest.py.

Usage:
    def test_provision(provisioner, gateway, billing_client):
        gateway.create_subscription.side_effect = GatewayError("boom", status_code=400)
        ...
"""

import pytest

from billing.services import SubscriptionCancellationService, SubscriptionProvisioner


@pytest.fixture
def provisioner(gateway):
    """Provisioner wired to the mock gateway."""
    return SubscriptionProvisioner(gateway=gateway)


@pytest.fixture
def cancellation_service(gateway):
    """Cancellation service wired to the mock gateway."""
    return SubscriptionCancellationService(gateway=gateway)
