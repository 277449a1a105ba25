"""
Billing models.

Models:
    Subscription: Recurring billing agreement mirrored from the gateway
    SubscriptionPayment: One charge of a subscription
    FinanceRecord: Ledger entry (one per paid subscription charge)
    GatewayConfiguration: Per-account gateway credentials and retry policy
    WebhookEvent: Stored gateway webhook delivery
    SubscriptionHistory: Append-only audit trail
"""

from billing.models.finance_record import FinanceRecord
from billing.models.gateway_configuration import GatewayConfiguration
from billing.models.history import SubscriptionHistory
from billing.models.payment import SubscriptionPayment
from billing.models.subscription import BILLING_CYCLE_MONTHS, Subscription
from billing.models.webhook_event import WebhookEvent

__all__ = [
    "BILLING_CYCLE_MONTHS",
    "FinanceRecord",
    "GatewayConfiguration",
    "Subscription",
    "SubscriptionHistory",
    "SubscriptionPayment",
    "WebhookEvent",
]
