"""
Payment gateway adapters.
"""

from billing.adapters.asaas_adapter import (
    BILLING_TYPE_BY_PAYMENT_METHOD,
    CYCLE_BY_SUBSCRIPTION_TYPE,
    SUBSCRIPTION_TYPE_BY_CYCLE,
    AsaasAdapter,
    CardHolderInfo,
    CreateCustomerParams,
    CreateSubscriptionParams,
    CreditCardDetails,
    CustomerResult,
    Page,
    PaymentResult,
    SubscriptionResult,
    payment_method_from_billing_type,
)

__all__ = [
    "AsaasAdapter",
    "BILLING_TYPE_BY_PAYMENT_METHOD",
    "CYCLE_BY_SUBSCRIPTION_TYPE",
    "CardHolderInfo",
    "CreateCustomerParams",
    "CreateSubscriptionParams",
    "CreditCardDetails",
    "CustomerResult",
    "Page",
    "PaymentResult",
    "SUBSCRIPTION_TYPE_BY_CYCLE",
    "SubscriptionResult",
    "payment_method_from_billing_type",
]
