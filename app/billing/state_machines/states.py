"""
State and vocabulary enums for billing models.

Django TextChoices for database storage and admin integration. The status
enums are driven by django-fsm transitions on the models.

State Machines Overview:

Subscription Status:
    active → paused → active
    active/paused → cancelled

Subscription Payment Status:
    pending → paid
    pending → overdue → pending (retry scheduled)
    overdue → paid (late payment)
    pending/overdue/paid → refunded
"""

from django.db import models


class SubscriptionStatus(models.TextChoices):
    """
    States for the Subscription lifecycle.

    Terminal states: CANCELLED

    State Flow:
        ACTIVE → PAUSED (retries exhausted on an overdue payment)
        PAUSED → ACTIVE (payment confirmed while paused)
        ACTIVE/PAUSED → CANCELLED
    """

    ACTIVE = "active", "Active"
    PAUSED = "paused", "Paused"
    CANCELLED = "cancelled", "Cancelled"


class SubscriptionType(models.TextChoices):
    """Billing cadence of a subscription."""

    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    ANNUAL = "annual", "Annual"


class PaymentMethod(models.TextChoices):
    """
    Payment methods.

    DEBIT_CARD only appears on payments reported by the gateway; new
    subscriptions are created with one of the other three.
    """

    CREDIT_CARD = "credit_card", "Credit Card"
    DEBIT_CARD = "debit_card", "Debit Card"
    PIX = "pix", "PIX"
    BOLETO = "boleto", "Boleto"


class PaymentStatus(models.TextChoices):
    """
    States for a single SubscriptionPayment.

    Terminal states: REFUNDED

    State Flow:
        PENDING → PAID
        PENDING → OVERDUE → PENDING (retry)
        OVERDUE → PAID
        PENDING/OVERDUE/PAID → REFUNDED
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    REFUNDED = "refunded", "Refunded"


class FinanceRecordType(models.TextChoices):
    """Direction of a ledger entry."""

    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


class FinanceRecordStatus(models.TextChoices):
    """Settlement status of a ledger entry."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class HistoryEventType(models.TextChoices):
    """Kinds of entries in the subscription audit trail."""

    CREATED = "created", "Created"
    PAYMENT_SUCCEEDED = "payment_succeeded", "Payment Succeeded"
    PAYMENT_OVERDUE = "payment_overdue", "Payment Overdue"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    CANCELLED = "cancelled", "Cancelled"
    PLAN_CHANGED = "plan_changed", "Plan Changed"
    PAUSED = "paused", "Paused"
    REACTIVATED = "reactivated", "Reactivated"


class GatewayEnvironment(models.TextChoices):
    """Gateway deployment an owner's credentials belong to."""

    SANDBOX = "sandbox", "Sandbox"
    PRODUCTION = "production", "Production"
