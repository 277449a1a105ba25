"""
Webhook ingestion: store every delivery first, then reconcile it.

Storage and reconciliation are separate steps. A delivery that reaches the
database is never lost even if reconciliation fails; the event stays
unprocessed and the periodic reprocess task picks it up again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

from billing.models import WebhookEvent
from billing.webhooks.reconciler import reconcile_webhook_event

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def extract_external_event_id(payload: dict[str, Any]) -> str:
    """
    Id of the object an event is about.

    payment.id for payment events, subscription.id for subscription events,
    the delivery's own id otherwise, and a timestamp-based id as last resort.
    """
    for key in ("payment", "subscription"):
        obj = payload.get(key)
        if isinstance(obj, dict) and obj.get("id"):
            return str(obj["id"])
    if payload.get("id"):
        return str(payload["id"])
    return f"evt_{int(timezone.now().timestamp() * 1000)}"


@dataclass
class IngestionResult:
    webhook_event: WebhookEvent
    processed: bool
    error: str | None = None


class WebhookIngestionService:
    """
    Persist and reconcile gateway webhooks.

    Usage:
        result = WebhookIngestionService().ingest(payload)
        if not result.processed:
            ...  # stays in the reprocess queue
    """

    def ingest(self, payload: dict[str, Any]) -> IngestionResult:
        """
        Store the delivery, then reconcile it.

        Raises:
            DatabaseError: The event could not be stored (caller answers 5xx
                so the gateway re-delivers)
        """
        event_type = str(payload.get("event") or "")
        external_event_id = extract_external_event_id(payload)

        webhook_event = WebhookEvent.objects.create(
            event_type=event_type,
            external_event_id=external_event_id,
            payload=payload,
        )

        logger.info(
            f"Stored webhook event: {event_type}",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "external_event_id": external_event_id,
            },
        )

        outcome = reconcile_webhook_event(webhook_event)
        return IngestionResult(
            webhook_event=webhook_event,
            processed=outcome.processed,
            error=outcome.error,
        )
