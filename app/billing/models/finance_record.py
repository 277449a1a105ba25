"""
FinanceRecord model: the local financial ledger.

Subscription revenue is written here when a payment is confirmed. The
one-to-one link to SubscriptionPayment is unique, so a paid charge can
produce at most one revenue entry no matter how often it is confirmed.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import FinanceRecordStatus, FinanceRecordType, PaymentMethod


class FinanceRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    A revenue or expense entry.

    Fields:
        owner: Account the entry belongs to
        client: Client the entry relates to (optional)
        subscription_payment: Charge that produced the entry (unique)
        type: Revenue or expense
        amount / description: What was booked
        payment_date / due_date: Settlement calendar
        status: Settlement status
        payment_method / category: Classification
        reference_month: First day of the month the entry is booked in
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="finance_records",
        help_text="Account the entry belongs to",
    )

    client = models.ForeignKey(
        "clients.Client",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="finance_records",
        help_text="Client the entry relates to",
    )

    subscription_payment = models.OneToOneField(
        "billing.SubscriptionPayment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="finance_record",
        help_text="Subscription charge that produced this entry",
    )

    # ==========================================================================
    # Entry
    # ==========================================================================

    type = models.CharField(
        max_length=20,
        choices=FinanceRecordType.choices,
        help_text="Revenue or expense",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Booked amount",
    )

    description = models.CharField(
        max_length=500,
        help_text="Entry description",
    )

    category = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Free-form category",
    )

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
        help_text="How the amount was settled",
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=FinanceRecordStatus.choices,
        default=FinanceRecordStatus.PENDING,
        db_index=True,
        help_text="Settlement status",
    )

    payment_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the amount was settled",
    )

    due_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the amount falls due",
    )

    reference_month = models.DateField(
        null=True,
        blank=True,
        help_text="First day of the month the entry is booked in",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Finance Record"
        verbose_name_plural = "Finance Records"
        indexes = [
            models.Index(fields=["description", "amount"], name="finance_desc_amount_idx"),
            models.Index(fields=["owner", "reference_month"], name="finance_owner_month_idx"),
        ]

    def __str__(self) -> str:
        return f"FinanceRecord({self.type}, {self.amount}, {self.status})"
