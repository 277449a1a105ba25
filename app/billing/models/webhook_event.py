"""
WebhookEvent model for gateway webhook tracking.

Every delivery from the gateway is stored before any reconciliation runs,
one row per physical delivery. The gateway delivers at least once and may
re-send an event, so (event_type, external_event_id) is indexed but not
unique; reconciliation itself is what makes re-deliveries harmless.

Usage:
    from billing.models import WebhookEvent

    event = WebhookEvent.objects.create(
        event_type="PAYMENT_CONFIRMED",
        external_event_id="pay_123",
        payload=payload,
    )

    event.mark_processing()
    ... # reconcile
    event.mark_processed()
    event.save()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from typing import Any


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A stored gateway webhook delivery.

    The received content (event_type, external_event_id, payload) never
    changes after insert: saving an existing row only writes the processing
    fields listed in PROCESSING_FIELDS.

    Fields:
        event_type: Gateway event name (e.g., 'PAYMENT_CONFIRMED')
        external_event_id: Id of the payment/subscription the event is about
        payload: Full webhook body
        processed: Whether reconciliation completed
        processed_at: When reconciliation completed
        error_message: Why the last reconciliation attempt failed
        attempts: Number of reconciliation attempts
    """

    PROCESSING_FIELDS = frozenset(
        {"processed", "processed_at", "error_message", "attempts", "updated_at"}
    )

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'PAYMENT_CONFIRMED')",
    )

    external_event_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Gateway id of the payment or subscription the event is about",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload from the gateway (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    processed = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether reconciliation completed",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When reconciliation completed",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if reconciliation failed",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of reconciliation attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(
                fields=["event_type", "external_event_id"],
                name="webhook_type_external_id_idx",
            ),
            models.Index(fields=["processed", "created_at"], name="webhook_processed_created_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_type}, {self.external_event_id})"

    def save(self, *args: Any, **kwargs: Any) -> None:
        """
        Insert normally; on update, write processing fields only.

        Raises:
            ValueError: If update_fields names a content field
        """
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                kwargs["update_fields"] = sorted(self.PROCESSING_FIELDS)
            elif not set(update_fields) <= self.PROCESSING_FIELDS:
                raise ValueError(
                    "Webhook event content is immutable; only processing fields can be updated"
                )
        super().save(*args, **kwargs)

    # ==========================================================================
    # Payload Accessors
    # ==========================================================================

    @property
    def payment_data(self) -> dict[str, Any] | None:
        """The payment object of a PAYMENT_* event, if present."""
        data = self.payload.get("payment") if isinstance(self.payload, dict) else None
        return data if isinstance(data, dict) else None

    @property
    def subscription_data(self) -> dict[str, Any] | None:
        """The subscription object of a SUBSCRIPTION_* event, if present."""
        data = self.payload.get("subscription") if isinstance(self.payload, dict) else None
        return data if isinstance(data, dict) else None

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Count a reconciliation attempt.

        Note: Does not save - caller must save after calling.
        """
        self.attempts += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully reconciled.

        Note: Does not save - caller must save after calling.
        """
        self.processed = True
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Record a failed reconciliation attempt.

        Note: Does not save - caller must save after calling.
        """
        self.processed = False
        self.error_message = error_message
