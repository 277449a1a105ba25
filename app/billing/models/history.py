"""
SubscriptionHistory model: append-only audit trail of subscription events.

Usage:
    from billing.services.history import record_history

    record_history(subscription, HistoryEventType.CANCELLED, "Cancelled by client")
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin

from billing.state_machines import HistoryEventType


class SubscriptionHistory(UUIDPrimaryKeyMixin, AppendOnlyMixin, BaseModel):
    """
    One entry in a subscription's audit trail.

    Entries are never updated or deleted.

    Fields:
        subscription: Subscription the entry belongs to
        event_type: What happened
        description: Human-readable summary
        external_event_id: Gateway id that caused the entry, if any
        actor: User who caused the entry (None for gateway/system events)
        old_value / new_value: Snapshots of changed data
    """

    subscription = models.ForeignKey(
        "billing.Subscription",
        on_delete=models.PROTECT,
        related_name="history",
        help_text="Subscription the entry belongs to",
    )

    event_type = models.CharField(
        max_length=30,
        choices=HistoryEventType.choices,
        db_index=True,
        help_text="What happened",
    )

    description = models.TextField(
        help_text="Human-readable summary",
    )

    external_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway id that caused the entry",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who caused the entry (empty for gateway or system events)",
    )

    old_value = models.JSONField(
        null=True,
        blank=True,
        help_text="Snapshot before the change",
    )

    new_value = models.JSONField(
        null=True,
        blank=True,
        help_text="Snapshot after the change",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription History Entry"
        verbose_name_plural = "Subscription History"
        indexes = [
            models.Index(fields=["subscription", "created_at"], name="history_sub_created_idx"),
        ]

    def __str__(self) -> str:
        return f"SubscriptionHistory({self.event_type}, {self.subscription_id})"
