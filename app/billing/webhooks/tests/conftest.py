"""
Pytest fixtures for webhook tests.

Payload builders live in payloads.py; fixtures here store events built
from them.
"""

import pytest

from billing.webhooks.tests.payloads import payment_payload, store_event


@pytest.fixture
def confirmed_event(db, pending_payment):
    """Stored PAYMENT_CONFIRMED for the pending payment."""
    return store_event(payment_payload("PAYMENT_CONFIRMED"))


@pytest.fixture
def orphan_event(db):
    """Stored PAYMENT_CONFIRMED for a subscription nobody knows."""
    return store_event(
        payment_payload(
            "PAYMENT_CONFIRMED", payment_id="pay_orphan_1", subscription_id="sub_unknown"
        )
    )
