import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0002_add_periodic_tasks"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="GatewayConfiguration",
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
                    "environment",
                    models.CharField(
                        choices=[("sandbox", "Sandbox"), ("production", "Production")],
                        default="sandbox",
                        help_text="Gateway environment the credentials belong to",
                        max_length=20,
                    ),
                ),
                (
                    "api_key",
                    models.CharField(
                        blank=True,
                        help_text="Gateway API key; leave empty to read it from secret_name",
                        max_length=255,
                    ),
                ),
                (
                    "secret_name",
                    models.CharField(
                        blank=True,
                        help_text="Environment variable holding the API key",
                        max_length=100,
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Whether this is the owner's current configuration",
                    ),
                ),
                (
                    "max_retry_attempts",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        help_text="Overdue retries before the subscription is paused (empty: default)",
                        null=True,
                    ),
                ),
                (
                    "retry_interval_days",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        help_text="Days between retries of an overdue charge (empty: default)",
                        null=True,
                    ),
                ),
                (
                    "auto_retry_failed_payments",
                    models.BooleanField(
                        default=True,
                        help_text="Whether overdue charges are scheduled for retry",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Account the configuration belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="gateway_configurations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Gateway Configuration",
                "verbose_name_plural": "Gateway Configurations",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("owner",),
                        name="gateway_config_one_active_per_owner",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("retry_interval_days__isnull", True),
                            ("retry_interval_days__gte", 1),
                            _connector="OR",
                        ),
                        name="gateway_config_retry_interval_positive",
                    ),
                ],
            },
        ),
    ]
