"""
Daily processing of due subscription payments.

Pending charges whose due date has passed are marked overdue. With
automatic retries enabled, an overdue charge is put back to pending with a
later retry date until the retry budget is spent; after that the
subscription is paused.

The retry policy is read from the owning account's GatewayConfiguration;
values it leaves unset come from settings:
- BILLING_MAX_RETRY_ATTEMPTS: Retries before pausing (default: 3)
- BILLING_RETRY_INTERVAL_DAYS: Days between retries (default: 3)
- BILLING_AUTO_RETRY_FAILED_PAYMENTS: Enable retries (default: True)
- BILLING_DUE_PAYMENTS_BATCH_SIZE: Payments per run (default: 100)
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from core.services import BaseService

from billing.models import SubscriptionPayment
from billing.services.gateway import RetryPolicy
from billing.services.history import record_history
from billing.state_machines import HistoryEventType, PaymentStatus

if TYPE_CHECKING:
    import uuid


class DuePaymentProcessor(BaseService):
    """
    Marks due payments overdue, schedules retries and pauses subscriptions.

    Each payment is handled in its own transaction so one bad row does not
    stop the batch.
    """

    @classmethod
    def run(cls, today: date | None = None) -> dict[str, Any]:
        """
        Process one batch of due payments.

        Returns:
            Counters: processed, failed, paused, total, date
        """
        logger = cls.get_logger()
        today = today or timezone.localdate()

        payment_ids = list(
            SubscriptionPayment.objects.filter(
                status=PaymentStatus.PENDING,
                due_date__lte=today,
            )
            .filter(Q(next_retry_date__isnull=True) | Q(next_retry_date__lte=today))
            .order_by("due_date")
            .values_list("id", flat=True)[: settings.BILLING_DUE_PAYMENTS_BATCH_SIZE]
        )

        stats = {
            "processed": 0,
            "failed": 0,
            "paused": 0,
            "total": len(payment_ids),
            "date": today.isoformat(),
        }

        policies: dict[Any, RetryPolicy] = {}
        for payment_id in payment_ids:
            try:
                paused = cls._process_payment(payment_id, today, policies)
            except DatabaseError:
                logger.exception(
                    "Failed to process due payment",
                    extra={"payment_id": str(payment_id)},
                )
                stats["failed"] += 1
                continue
            stats["processed"] += 1
            if paused:
                stats["paused"] += 1

        logger.info("Due payment processing finished", extra=stats)
        return stats

    @classmethod
    def _process_payment(
        cls,
        payment_id: uuid.UUID,
        today: date,
        policies: dict[Any, RetryPolicy] | None = None,
    ) -> bool:
        """
        Handle one due payment.

        policies caches each owner's RetryPolicy for the rest of the run.

        Returns:
            True if the subscription was paused
        """
        with cls.atomic():
            payment = (
                SubscriptionPayment.objects.select_for_update()
                .filter(pk=payment_id, status=PaymentStatus.PENDING)
                .first()
            )
            if payment is None:
                # Paid or refunded by a webhook since the batch was read
                return False

            subscription = payment.subscription
            policy = cls._policy_for(subscription.owner_id, policies)
            reference = payment.external_payment_id or str(payment.id)

            payment.mark_overdue()
            record_history(
                subscription,
                HistoryEventType.PAYMENT_OVERDUE,
                f"Payment {reference} overdue (due {payment.due_date.isoformat()})",
                external_event_id=payment.external_payment_id,
                new_value={"retry_count": payment.retry_count},
            )

            paused = False
            if policy.auto_retry and payment.retry_count < policy.max_attempts:
                retry_date = today + timedelta(days=policy.interval_days)
                payment.schedule_retry(retry_date)
            elif payment.retry_count >= policy.max_attempts and subscription.is_active:
                subscription.pause()
                subscription.save()
                record_history(
                    subscription,
                    HistoryEventType.PAUSED,
                    f"Subscription paused after {payment.retry_count} failed payment attempts",
                    external_event_id=payment.external_payment_id,
                )
                paused = True

            payment.save()

        return paused

    @staticmethod
    def _policy_for(owner_id: Any, policies: dict[Any, RetryPolicy] | None) -> RetryPolicy:
        if policies is None:
            return RetryPolicy.for_owner(owner_id)
        if owner_id not in policies:
            policies[owner_id] = RetryPolicy.for_owner(owner_id)
        return policies[owner_id]
