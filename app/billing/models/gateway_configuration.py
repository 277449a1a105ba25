"""
GatewayConfiguration model for per-account gateway credentials.

Each account bills its clients through its own Asaas account. The active
configuration decides which API key and environment the gateway adapter
uses for that owner's subscriptions, and the retry policy the daily
due-payment run applies to them.

The API key is either stored directly or read from the environment
variable named by secret_name, so deployments can keep keys out of the
database. Without either, ASAAS_API_KEY is used.

Usage:
    from billing.models import GatewayConfiguration

    configuration = GatewayConfiguration.active_for_owner(user.pk)
    with configuration.build_adapter() as gateway:
        gateway.create_customer(...)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import environ
from django.conf import settings
from django.db import models

from core.exceptions import ValidationError
from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.adapters import AsaasAdapter
from billing.state_machines import GatewayEnvironment

if TYPE_CHECKING:
    import uuid

env = environ.Env()


class GatewayConfiguration(UUIDPrimaryKeyMixin, BaseModel):
    """
    Gateway credentials and retry policy of one account.

    At most one configuration per owner is active; older ones are kept
    inactive for reference.

    Fields:
        owner: Account the configuration belongs to
        environment: sandbox or production
        api_key: Gateway API key (optional, see secret_name)
        secret_name: Environment variable holding the API key
        is_active: Whether this is the owner's current configuration
        max_retry_attempts: Overdue retries before pausing (empty: setting default)
        retry_interval_days: Days between retries (empty: setting default)
        auto_retry_failed_payments: Whether overdue charges are retried
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="gateway_configurations",
        help_text="Account the configuration belongs to",
    )

    # ==========================================================================
    # Credentials
    # ==========================================================================

    environment = models.CharField(
        max_length=20,
        choices=GatewayEnvironment.choices,
        default=GatewayEnvironment.SANDBOX,
        help_text="Gateway environment the credentials belong to",
    )

    api_key = models.CharField(
        max_length=255,
        blank=True,
        help_text="Gateway API key; leave empty to read it from secret_name",
    )

    secret_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="Environment variable holding the API key",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this is the owner's current configuration",
    )

    # ==========================================================================
    # Retry Policy
    # ==========================================================================

    max_retry_attempts = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Overdue retries before the subscription is paused (empty: default)",
    )

    retry_interval_days = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Days between retries of an overdue charge (empty: default)",
    )

    auto_retry_failed_payments = models.BooleanField(
        default=True,
        help_text="Whether overdue charges are scheduled for retry",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Configuration"
        verbose_name_plural = "Gateway Configurations"
        constraints = [
            models.UniqueConstraint(
                fields=["owner"],
                condition=models.Q(is_active=True),
                name="gateway_config_one_active_per_owner",
            ),
            models.CheckConstraint(
                condition=models.Q(retry_interval_days__isnull=True)
                | models.Q(retry_interval_days__gte=1),
                name="gateway_config_retry_interval_positive",
            ),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"GatewayConfiguration({self.owner_id}, {self.environment}, {state})"

    @classmethod
    def active_for_owner(cls, owner_id: int | uuid.UUID) -> GatewayConfiguration | None:
        """The owner's active configuration, or None."""
        return (
            cls.objects.filter(owner_id=owner_id, is_active=True)
            .order_by("-created_at")
            .first()
        )

    def resolve_api_key(self) -> str:
        """Stored key, else the named environment variable, else ASAAS_API_KEY."""
        if self.api_key:
            return self.api_key
        if self.secret_name:
            return env.str(self.secret_name, default="")
        return settings.ASAAS_API_KEY

    def build_adapter(self) -> AsaasAdapter:
        """
        Gateway adapter for this configuration. Close it when done.

        Raises:
            ValidationError: No API key could be resolved
                (GATEWAY_NOT_CONFIGURED)
        """
        api_key = self.resolve_api_key()
        if not api_key:
            raise ValidationError(
                "Payment gateway API key is not configured",
                error_code="GATEWAY_NOT_CONFIGURED",
                details={"secret_name": self.secret_name or None},
            )
        return AsaasAdapter.from_settings(api_key=api_key, environment=self.environment)
