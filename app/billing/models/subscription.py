"""
Subscription model for recurring billing agreements.

A Subscription is the local mirror of a recurring charge registered at the
payment gateway. Rows are only written after the gateway accepted the
subscription, so every row carries the gateway's subscription id.

Usage:
    from billing.models import Subscription
    from billing.state_machines import SubscriptionStatus

    subscription = Subscription.objects.get(external_subscription_id="sub_xxx")

    # State transitions using django-fsm
    subscription.cancel(reason="Client requested")  # active -> cancelled
    subscription.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import PaymentMethod, SubscriptionStatus, SubscriptionType

# Months between charges for each cadence
BILLING_CYCLE_MONTHS = {
    SubscriptionType.MONTHLY: 1,
    SubscriptionType.QUARTERLY: 3,
    SubscriptionType.ANNUAL: 12,
}


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A recurring billing agreement for a client.

    State Flow:
        ACTIVE -> PAUSED (retries exhausted)
        PAUSED -> ACTIVE (payment confirmed)
        ACTIVE/PAUSED -> CANCELLED

    Fields:
        client: Client being billed
        owner: Account that created the subscription
        external_customer_id: Gateway customer id at creation time
        external_subscription_id: Gateway subscription id (sub_xxx)
        idempotency_key: Caller-supplied key for safe resubmission
        subscription_type / billing_cycle: Cadence and its length in months
        amount: Charge per cycle
        billing_day: Day of month the charge falls due
        payment_method: How the client pays
        card_last_four / card_holder_name: Display data for card payments
        status: Current FSM state
        start_date / next_due_date: Billing calendar
        cancelled_at / cancellation_reason: Set by the cancel transition
        synced_at: Last time gateway data was applied
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    client = models.ForeignKey(
        "clients.Client",
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Client being billed",
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="billing_subscriptions",
        help_text="Account that created the subscription",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    external_customer_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway customer id (cus_xxx) at creation time",
    )

    external_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway subscription id (sub_xxx)",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Caller-supplied key; resubmissions return the same subscription",
    )

    # ==========================================================================
    # Plan
    # ==========================================================================

    subscription_type = models.CharField(
        max_length=20,
        choices=SubscriptionType.choices,
        help_text="Billing cadence",
    )

    billing_cycle = models.PositiveSmallIntegerField(
        help_text="Months between charges (1, 3 or 12)",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount charged each cycle",
    )

    billing_day = models.PositiveSmallIntegerField(
        help_text="Day of the month the charge falls due (1-31)",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Description shown on the gateway charge",
    )

    auto_renew = models.BooleanField(
        default=True,
        help_text="Whether the subscription renews automatically",
    )

    # ==========================================================================
    # Payment Method
    # ==========================================================================

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        help_text="How the client pays",
    )

    card_last_four = models.CharField(
        max_length=4,
        blank=True,
        default="",
        help_text="Last four digits of the card (credit card only)",
    )

    card_holder_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Name printed on the card (credit card only)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionStatus.ACTIVE,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the subscription (managed by FSM)",
    )

    # ==========================================================================
    # Billing Calendar
    # ==========================================================================

    start_date = models.DateField(
        help_text="Date the subscription started",
    )

    next_due_date = models.DateField(
        null=True,
        blank=True,
        help_text="Next date a charge falls due",
    )

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When subscription was cancelled",
    )

    cancellation_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the subscription was cancelled",
    )

    # ==========================================================================
    # Sync
    # ==========================================================================

    synced_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time gateway data was applied to this row",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["owner", "status"], name="subscription_owner_status_idx"),
            models.Index(fields=["client", "status"], name="subscription_client_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="subscription_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(billing_day__gte=1, billing_day__lte=31),
                name="subscription_billing_day_range",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.id}, {self.status}, {self.amount}/{self.subscription_type})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.PAUSED,
    )
    def pause(self):
        """
        Pause billing after payment retries were exhausted.

        Transition: ACTIVE -> PAUSED
        """
        pass

    @transition(
        field=status,
        source=SubscriptionStatus.PAUSED,
        target=SubscriptionStatus.ACTIVE,
    )
    def resume(self):
        """
        Resume a paused subscription once a payment is confirmed.

        Transition: PAUSED -> ACTIVE
        """
        pass

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Cancel the subscription.

        Transition: ACTIVE/PAUSED -> CANCELLED

        Can be triggered by:
        - Client cancellation through the API
        - SUBSCRIPTION_CANCELLED / SUBSCRIPTION_DELETED webhooks
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ""

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self.status == SubscriptionStatus.PAUSED

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED
