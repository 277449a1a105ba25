"""
Celery tasks for billing.

This module provides async tasks for:
- Reconciling a stored webhook event
- Periodically re-queuing webhook events that failed to reconcile
- Daily processing of due subscription payments

Usage:
    from billing.tasks import process_webhook_event

    # Queue a stored webhook for reconciliation
    process_webhook_event.delay(str(webhook_event.id))

    # Typically via celery-beat (see migration 0002_add_periodic_tasks)
    from billing.tasks import reprocess_unprocessed_webhooks, process_due_payments
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from billing.models import WebhookEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = 5
REPROCESS_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Reconcile a stored webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips it if already processed (idempotency)
    3. Runs one recorded reconciliation attempt

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    # Import here to avoid circular imports
    from billing.webhooks.reconciler import reconcile_webhook_event

    # Convert string ID to UUID if needed
    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "external_event_id": webhook_event.external_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    outcome = reconcile_webhook_event(webhook_event)

    if outcome.processed:
        return {"status": "processed", "webhook_event_id": str(webhook_event_id)}
    return {
        "status": "failed",
        "webhook_event_id": str(webhook_event_id),
        "error": outcome.error,
        "attempts": webhook_event.attempts,
    }


@shared_task
def reprocess_unprocessed_webhooks() -> dict:
    """
    Periodic task to re-queue webhook events that did not reconcile.

    Picks unprocessed events that still have attempts left and are older
    than the grace period (so an in-flight synchronous attempt is not
    raced), oldest first.

    This task should be scheduled via celery-beat, e.g., every 15 minutes.
    """
    cutoff = timezone.now() - timedelta(minutes=settings.WEBHOOK_REPROCESS_GRACE_MINUTES)

    pending_ids = list(
        WebhookEvent.objects.filter(
            processed=False,
            attempts__lt=settings.WEBHOOK_MAX_ATTEMPTS,
            created_at__lt=cutoff,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:REPROCESS_BATCH_SIZE]
    )

    for webhook_event_id in pending_ids:
        process_webhook_event.delay(str(webhook_event_id))

    if pending_ids:
        logger.info(
            f"Re-queued {len(pending_ids)} unprocessed webhook events",
            extra={"count": len(pending_ids)},
        )

    return {"queued": len(pending_ids)}


# =============================================================================
# Payment Processing Tasks
# =============================================================================


@shared_task
def process_due_payments() -> dict:
    """
    Daily task: mark due payments overdue, schedule retries, pause
    subscriptions that ran out of retries.

    This task should be scheduled via celery-beat, once a day.
    """
    from billing.services import DuePaymentProcessor

    return DuePaymentProcessor.run()
