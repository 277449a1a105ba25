"""
SubscriptionPayment model: one charge of a subscription's billing cycle.

The gateway's payment id is unique, which is what keeps re-delivered and
concurrent webhooks from creating the same payment twice.

Usage:
    from billing.models import SubscriptionPayment

    payment = SubscriptionPayment.objects.get(external_payment_id="pay_xxx")
    payment.mark_paid(paid_date=date.today())
    payment.save()
"""

from __future__ import annotations

from datetime import date

from django.db import models

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import PaymentMethod, PaymentStatus


class SubscriptionPayment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single charge belonging to a Subscription.

    State Flow:
        PENDING -> PAID
        PENDING -> OVERDUE -> PENDING (retry scheduled)
        OVERDUE -> PAID
        PENDING/OVERDUE/PAID -> REFUNDED

    Fields:
        subscription: Owning subscription
        external_payment_id: Gateway payment id (pay_xxx), unique
        amount: Charged amount
        due_date / paid_date: When it falls due and when it was paid
        billing_period_start/end: Period the charge covers
        invoice_url: Gateway invoice link
        payment_method: Method reported by the gateway
        retry_count / next_retry_date: Overdue retry bookkeeping
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    subscription = models.ForeignKey(
        "billing.Subscription",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Subscription this charge belongs to",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    external_payment_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway payment id (pay_xxx) - unique constraint for idempotency",
    )

    invoice_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Gateway invoice link",
    )

    # ==========================================================================
    # Amount & Dates
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Charged amount",
    )

    due_date = models.DateField(
        db_index=True,
        help_text="Date the charge falls due",
    )

    paid_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the charge was paid",
    )

    billing_period_start = models.DateField(
        null=True,
        blank=True,
        help_text="First day covered by this charge",
    )

    billing_period_end = models.DateField(
        null=True,
        blank=True,
        help_text="Last day covered by this charge",
    )

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CREDIT_CARD,
        help_text="Payment method reported by the gateway",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Retry Tracking
    # ==========================================================================

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of retries scheduled after the charge went overdue",
    )

    next_retry_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the next retry is due",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-due_date"]
        verbose_name = "Subscription Payment"
        verbose_name_plural = "Subscription Payments"
        indexes = [
            models.Index(fields=["status", "due_date"], name="payment_status_due_idx"),
            models.Index(fields=["subscription", "status"], name="payment_sub_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="subscription_payment_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"SubscriptionPayment({self.external_payment_id}, {self.status}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.PAID],
        target=PaymentStatus.PAID,
    )
    def mark_paid(self, paid_date: date, invoice_url: str | None = None):
        """
        Record the payment as paid.

        Transition: PENDING/OVERDUE/PAID -> PAID

        PAID -> PAID is allowed so re-delivered confirmations stay no-ops.
        """
        self.paid_date = paid_date
        if invoice_url:
            self.invoice_url = invoice_url

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.OVERDUE],
        target=PaymentStatus.OVERDUE,
    )
    def mark_overdue(self):
        """
        Transition: PENDING/OVERDUE -> OVERDUE
        """
        pass

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.PAID],
        target=PaymentStatus.REFUNDED,
    )
    def mark_refunded(self):
        """
        Transition: PENDING/OVERDUE/PAID -> REFUNDED
        """
        pass

    @transition(
        field=status,
        source=PaymentStatus.OVERDUE,
        target=PaymentStatus.PENDING,
    )
    def schedule_retry(self, retry_date: date):
        """
        Put an overdue charge back in the queue for another attempt.

        Transition: OVERDUE -> PENDING
        """
        self.retry_count += 1
        self.next_retry_date = retry_date

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def is_refunded(self) -> bool:
        return self.status == PaymentStatus.REFUNDED
