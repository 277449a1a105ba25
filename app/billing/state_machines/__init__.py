"""
State machine enums for billing models.
"""

from billing.state_machines.states import (
    FinanceRecordStatus,
    FinanceRecordType,
    GatewayEnvironment,
    HistoryEventType,
    PaymentMethod,
    PaymentStatus,
    SubscriptionStatus,
    SubscriptionType,
)

__all__ = [
    "FinanceRecordStatus",
    "FinanceRecordType",
    "GatewayEnvironment",
    "HistoryEventType",
    "PaymentMethod",
    "PaymentStatus",
    "SubscriptionStatus",
    "SubscriptionType",
]
