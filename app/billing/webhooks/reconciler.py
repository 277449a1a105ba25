"""
Run reconciliation for one stored webhook event and record the outcome.

Shared by synchronous ingestion, the Celery task and the admin
reprocess action, so every attempt is counted and recorded the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction

from core.exceptions import BaseApplicationError
from core.services import ServiceResult

from billing.models import WebhookEvent
from billing.webhooks.handlers import dispatch_webhook

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationOutcome:
    """Result of one reconciliation attempt."""

    processed: bool
    error: str | None = None
    error_code: str | None = None


def reconcile_webhook_event(webhook_event: WebhookEvent) -> ReconciliationOutcome:
    """
    Apply a stored webhook event to local state.

    Handler errors never propagate: they are recorded on the event
    (processed=False, error_message) so it can be retried later.
    """
    webhook_event.mark_processing()

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except BaseApplicationError as e:
        logger.warning(
            f"Reconciliation of {webhook_event.event_type} unresolved: {e.message}",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "external_event_id": webhook_event.external_event_id,
                "error_code": e.error_code,
            },
        )
        result = ServiceResult.from_exception(e)
    except Exception as e:
        logger.exception(
            f"Error reconciling webhook {webhook_event.id}",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "event_type": webhook_event.event_type,
            },
        )
        result = ServiceResult.failure(
            f"{type(e).__name__}: {e}", error_code="RECONCILIATION_ERROR"
        )

    if result.success:
        webhook_event.mark_processed()
    else:
        webhook_event.mark_failed(result.error or "Reconciliation failed")

    try:
        webhook_event.save()
    except DatabaseError:
        logger.exception(
            "Failed to record reconciliation outcome",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "processed": result.success,
            },
        )

    if result.success:
        logger.info(
            f"Webhook {webhook_event.event_type} reconciled",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "external_event_id": webhook_event.external_event_id,
                "attempts": webhook_event.attempts,
            },
        )

    return ReconciliationOutcome(
        processed=result.success,
        error=result.error,
        error_code=result.error_code,
    )
