"""
Subscription cancellation workflow.

The gateway is told first, with the owner's configured credentials, so it
stops charging. Local state is updated even when the gateway call fails,
and the failure is reported back as a warning rather than an error.

Usage:
    from billing.services import SubscriptionCancellationService

    result = SubscriptionCancellationService().cancel(
        subscription_id, reason="Moving to another provider", actor=request.user
    )
    result.warnings  # ["Gateway cancellation failed: ..."] when the gateway refused
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService

from billing.adapters import AsaasAdapter
from billing.exceptions import GatewayError
from billing.models import Subscription
from billing.services.gateway import open_owner_gateway
from billing.services.history import record_history
from billing.state_machines import HistoryEventType

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

DEFAULT_CANCELLATION_REASON = "Cancelled by user"


@dataclass
class CancellationResult:
    """
    Outcome of a cancellation.

    Attributes:
        subscription: The cancelled subscription
        remote_cancelled: Whether the gateway confirmed the cancellation
        warnings: Non-fatal problems (e.g., gateway refused the cancel)
    """

    subscription: Subscription
    remote_cancelled: bool = False
    warnings: list[str] = field(default_factory=list)


class SubscriptionCancellationService(BaseService):
    """
    Cancels subscriptions at the gateway and locally.

    Dependency Injection:
        The gateway adapter can be injected for testing; otherwise the
        subscription owner's configured gateway is opened per call.
    """

    def __init__(self, gateway: AsaasAdapter | None = None):
        self.gateway = gateway

    def cancel(
        self,
        subscription_id: uuid.UUID | str,
        reason: str | None = None,
        actor: AbstractBaseUser | None = None,
    ) -> CancellationResult:
        """
        Cancel a subscription.

        Args:
            subscription_id: Subscription to cancel
            reason: Stored on the subscription and in the history entry
            actor: Acting user; the subscription must belong to them

        Returns:
            CancellationResult

        Raises:
            NotFoundError: Subscription missing or not owned by the actor
            ConflictError: Subscription already cancelled
                (SUBSCRIPTION_ALREADY_CANCELLED)
            ValidationError: The owner has no usable gateway configuration
                (GATEWAY_NOT_CONFIGURED); nothing is changed
        """
        logger = self.get_logger()
        subscription = self._load(subscription_id, actor)
        self._ensure_not_cancelled(subscription)

        remote_cancelled = False
        warnings: list[str] = []
        if subscription.external_subscription_id:
            with open_owner_gateway(subscription.owner_id, gateway=self.gateway) as gateway:
                remote_cancelled, warning = self._cancel_remote(gateway, subscription)
            if warning:
                warnings.append(warning)

        reason = reason or DEFAULT_CANCELLATION_REASON
        with self.atomic():
            locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
            # A webhook may have cancelled it while the gateway call ran
            self._ensure_not_cancelled(locked)
            previous_status = locked.status
            locked.cancel(reason=reason)
            locked.save()
            record_history(
                locked,
                HistoryEventType.CANCELLED,
                f"Subscription cancelled: {reason}",
                external_event_id=locked.external_subscription_id,
                actor=actor,
                old_value={"status": previous_status},
                new_value={"status": locked.status, "reason": reason},
            )

        logger.info(
            "Subscription cancelled",
            extra={
                "subscription_id": str(locked.id),
                "remote_cancelled": remote_cancelled,
                "warnings": warnings,
            },
        )
        return CancellationResult(
            subscription=locked,
            remote_cancelled=remote_cancelled,
            warnings=warnings,
        )

    def _cancel_remote(
        self, gateway: AsaasAdapter, subscription: Subscription
    ) -> tuple[bool, str | None]:
        """
        Cancel at the gateway.

        Returns:
            (remote_cancelled, warning); a refusal or a response that does
            not confirm the deletion becomes a warning
        """
        logger = self.get_logger()
        log_context = {
            "subscription_id": str(subscription.id),
            "external_subscription_id": subscription.external_subscription_id,
        }
        try:
            deleted = gateway.cancel_subscription(subscription.external_subscription_id)
        except GatewayError as e:
            logger.warning(
                "Gateway refused cancellation; cancelling locally",
                extra={**log_context, "status_code": e.status_code, "error": e.gateway_message},
            )
            return False, f"Gateway cancellation failed: {e.gateway_message}"

        if not deleted:
            logger.warning(
                "Gateway did not confirm the cancellation; cancelling locally",
                extra=log_context,
            )
            return False, "Gateway did not confirm the cancellation"
        return True, None

    def _load(self, subscription_id: uuid.UUID | str, actor: AbstractBaseUser | None) -> Subscription:
        queryset = Subscription.objects.all()
        if actor is not None:
            queryset = queryset.filter(owner=actor)
        subscription = queryset.filter(pk=subscription_id).first()
        if subscription is None:
            raise NotFoundError(
                "Subscription not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                details={"subscription_id": str(subscription_id)},
            )
        return subscription

    @staticmethod
    def _ensure_not_cancelled(subscription: Subscription) -> None:
        if subscription.is_cancelled:
            raise ConflictError(
                "Subscription is already cancelled",
                error_code="SUBSCRIPTION_ALREADY_CANCELLED",
                details={"subscription_id": str(subscription.id)},
            )
