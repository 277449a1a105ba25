"""
Per-account gateway access.

Services talk to the gateway with the credentials of the account that owns
the subscription. open_owner_gateway() resolves the account's active
GatewayConfiguration, builds the adapter and closes its HTTP client when
the block ends. RetryPolicy reads the same configuration for the daily
due-payment run, falling back to the BILLING_* settings.

Usage:
    from billing.services.gateway import open_owner_gateway

    with open_owner_gateway(subscription.owner_id) as gateway:
        gateway.cancel_subscription(subscription.external_subscription_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import ValidationError

from billing.models import GatewayConfiguration

if TYPE_CHECKING:
    import uuid

    from billing.adapters import AsaasAdapter


@contextmanager
def open_owner_gateway(
    owner_id: int | uuid.UUID,
    gateway: AsaasAdapter | None = None,
) -> Iterator[AsaasAdapter]:
    """
    Adapter built from the owner's active configuration.

    An already open gateway (tests, callers sharing one adapter) is used
    as is and left open.

    Raises:
        ValidationError: The owner has no active configuration, or it
            resolves to no API key (GATEWAY_NOT_CONFIGURED)
    """
    if gateway is not None:
        yield gateway
        return

    configuration = GatewayConfiguration.active_for_owner(owner_id)
    if configuration is None:
        raise ValidationError(
            "Payment gateway is not configured for this account",
            error_code="GATEWAY_NOT_CONFIGURED",
            details={"owner_id": str(owner_id)},
        )
    with configuration.build_adapter() as gateway:
        yield gateway


@dataclass(frozen=True)
class RetryPolicy:
    """How overdue charges of one account are retried."""

    max_attempts: int
    interval_days: int
    auto_retry: bool

    @classmethod
    def defaults(cls) -> RetryPolicy:
        return cls(
            max_attempts=settings.BILLING_MAX_RETRY_ATTEMPTS,
            interval_days=settings.BILLING_RETRY_INTERVAL_DAYS,
            auto_retry=settings.BILLING_AUTO_RETRY_FAILED_PAYMENTS,
        )

    @classmethod
    def for_owner(cls, owner_id: int | uuid.UUID) -> RetryPolicy:
        """The owner's configured policy; unset values use the settings."""
        default = cls.defaults()
        configuration = GatewayConfiguration.active_for_owner(owner_id)
        if configuration is None:
            return default
        return cls(
            max_attempts=(
                configuration.max_retry_attempts
                if configuration.max_retry_attempts is not None
                else default.max_attempts
            ),
            interval_days=configuration.retry_interval_days or default.interval_days,
            auto_retry=configuration.auto_retry_failed_payments,
        )
