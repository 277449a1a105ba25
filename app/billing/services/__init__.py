"""
Billing services.

- SubscriptionProvisioner: Create subscriptions at the gateway and locally
- SubscriptionCancellationService: Cancel at the gateway, then locally
- open_owner_gateway, RetryPolicy: Per-account gateway credentials and retry policy
- DuePaymentProcessor: Overdue marking, retries and pausing
- record_history: Append to the subscription audit trail
- record_subscription_revenue: Book revenue for a paid charge (once)
"""

from billing.services.cancellation import CancellationResult, SubscriptionCancellationService
from billing.services.due_payments import DuePaymentProcessor
from billing.services.gateway import RetryPolicy, open_owner_gateway
from billing.services.history import record_history
from billing.services.ledger import cancel_subscription_revenue, record_subscription_revenue
from billing.services.provisioning import (
    ProvisionRequest,
    ProvisionResult,
    SubscriptionProvisioner,
)

__all__ = [
    "CancellationResult",
    "DuePaymentProcessor",
    "ProvisionRequest",
    "ProvisionResult",
    "RetryPolicy",
    "SubscriptionCancellationService",
    "SubscriptionProvisioner",
    "cancel_subscription_revenue",
    "open_owner_gateway",
    "record_history",
    "record_subscription_revenue",
]
