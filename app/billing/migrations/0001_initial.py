import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("clients", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'PAYMENT_CONFIRMED')",
                        max_length=100,
                    ),
                ),
                (
                    "external_event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway id of the payment or subscription the event is about",
                        max_length=255,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from the gateway (JSON)"),
                ),
                (
                    "processed",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether reconciliation completed",
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True, help_text="When reconciliation completed", null=True
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if reconciliation failed",
                        null=True,
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of reconciliation attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["event_type", "external_event_id"],
                        name="webhook_type_external_id_idx",
                    ),
                    models.Index(
                        fields=["processed", "created_at"],
                        name="webhook_processed_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "external_customer_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway customer id (cus_xxx) at creation time",
                        max_length=255,
                    ),
                ),
                (
                    "external_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway subscription id (sub_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Caller-supplied key; resubmissions return the same subscription",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "subscription_type",
                    models.CharField(
                        choices=[
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("annual", "Annual"),
                        ],
                        help_text="Billing cadence",
                        max_length=20,
                    ),
                ),
                (
                    "billing_cycle",
                    models.PositiveSmallIntegerField(
                        help_text="Months between charges (1, 3 or 12)"
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount charged each cycle",
                        max_digits=12,
                    ),
                ),
                (
                    "billing_day",
                    models.PositiveSmallIntegerField(
                        help_text="Day of the month the charge falls due (1-31)"
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Description shown on the gateway charge",
                    ),
                ),
                (
                    "auto_renew",
                    models.BooleanField(
                        default=True,
                        help_text="Whether the subscription renews automatically",
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("credit_card", "Credit Card"),
                            ("debit_card", "Debit Card"),
                            ("pix", "PIX"),
                            ("boleto", "Boleto"),
                        ],
                        help_text="How the client pays",
                        max_length=20,
                    ),
                ),
                (
                    "card_last_four",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Last four digits of the card (credit card only)",
                        max_length=4,
                    ),
                ),
                (
                    "card_holder_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Name printed on the card (credit card only)",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("active", "Active"),
                            ("paused", "Paused"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="active",
                        help_text="Current state of the subscription (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "start_date",
                    models.DateField(help_text="Date the subscription started"),
                ),
                (
                    "next_due_date",
                    models.DateField(
                        blank=True, help_text="Next date a charge falls due", null=True
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True, help_text="When subscription was cancelled", null=True
                    ),
                ),
                (
                    "cancellation_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Why the subscription was cancelled",
                    ),
                ),
                (
                    "synced_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Last time gateway data was applied to this row",
                        null=True,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        help_text="Client being billed",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to="clients.client",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Account that created the subscription",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="billing_subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["owner", "status"], name="subscription_owner_status_idx"
                    ),
                    models.Index(
                        fields=["client", "status"], name="subscription_client_status_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="subscription_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("billing_day__gte", 1), ("billing_day__lte", 31)),
                        name="subscription_billing_day_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionPayment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "external_payment_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway payment id (pay_xxx) - unique constraint for idempotency",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "invoice_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Gateway invoice link",
                        max_length=500,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2, help_text="Charged amount", max_digits=12
                    ),
                ),
                (
                    "due_date",
                    models.DateField(db_index=True, help_text="Date the charge falls due"),
                ),
                (
                    "paid_date",
                    models.DateField(
                        blank=True, help_text="Date the charge was paid", null=True
                    ),
                ),
                (
                    "billing_period_start",
                    models.DateField(
                        blank=True, help_text="First day covered by this charge", null=True
                    ),
                ),
                (
                    "billing_period_end",
                    models.DateField(
                        blank=True, help_text="Last day covered by this charge", null=True
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("credit_card", "Credit Card"),
                            ("debit_card", "Debit Card"),
                            ("pix", "PIX"),
                            ("boleto", "Boleto"),
                        ],
                        default="credit_card",
                        help_text="Payment method reported by the gateway",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("overdue", "Overdue"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of retries scheduled after the charge went overdue",
                    ),
                ),
                (
                    "next_retry_date",
                    models.DateField(
                        blank=True, help_text="Date the next retry is due", null=True
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Subscription this charge belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="billing.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription Payment",
                "verbose_name_plural": "Subscription Payments",
                "ordering": ["-due_date"],
                "indexes": [
                    models.Index(fields=["status", "due_date"], name="payment_status_due_idx"),
                    models.Index(
                        fields=["subscription", "status"], name="payment_sub_status_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="subscription_payment_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FinanceRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("revenue", "Revenue"), ("expense", "Expense")],
                        help_text="Revenue or expense",
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2, help_text="Booked amount", max_digits=12
                    ),
                ),
                (
                    "description",
                    models.CharField(help_text="Entry description", max_length=500),
                ),
                (
                    "category",
                    models.CharField(
                        blank=True, default="", help_text="Free-form category", max_length=100
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("credit_card", "Credit Card"),
                            ("debit_card", "Debit Card"),
                            ("pix", "PIX"),
                            ("boleto", "Boleto"),
                        ],
                        default="",
                        help_text="How the amount was settled",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("overdue", "Overdue"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Settlement status",
                        max_length=20,
                    ),
                ),
                (
                    "payment_date",
                    models.DateField(
                        blank=True, help_text="Date the amount was settled", null=True
                    ),
                ),
                (
                    "due_date",
                    models.DateField(
                        blank=True, help_text="Date the amount falls due", null=True
                    ),
                ),
                (
                    "reference_month",
                    models.DateField(
                        blank=True,
                        help_text="First day of the month the entry is booked in",
                        null=True,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Account the entry belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        blank=True,
                        help_text="Client the entry relates to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="finance_records",
                        to="clients.client",
                    ),
                ),
                (
                    "subscription_payment",
                    models.OneToOneField(
                        blank=True,
                        help_text="Subscription charge that produced this entry",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_record",
                        to="billing.subscriptionpayment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Finance Record",
                "verbose_name_plural": "Finance Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["description", "amount"], name="finance_desc_amount_idx"
                    ),
                    models.Index(
                        fields=["owner", "reference_month"], name="finance_owner_month_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionHistory",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("payment_succeeded", "Payment Succeeded"),
                            ("payment_overdue", "Payment Overdue"),
                            ("payment_refunded", "Payment Refunded"),
                            ("cancelled", "Cancelled"),
                            ("plan_changed", "Plan Changed"),
                            ("paused", "Paused"),
                            ("reactivated", "Reactivated"),
                        ],
                        db_index=True,
                        help_text="What happened",
                        max_length=30,
                    ),
                ),
                ("description", models.TextField(help_text="Human-readable summary")),
                (
                    "external_event_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway id that caused the entry",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "old_value",
                    models.JSONField(
                        blank=True, help_text="Snapshot before the change", null=True
                    ),
                ),
                (
                    "new_value",
                    models.JSONField(
                        blank=True, help_text="Snapshot after the change", null=True
                    ),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who caused the entry (empty for gateway or system events)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Subscription the entry belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="history",
                        to="billing.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription History Entry",
                "verbose_name_plural": "Subscription History",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["subscription", "created_at"], name="history_sub_created_idx"
                    ),
                ],
            },
        ),
    ]
