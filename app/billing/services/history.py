"""
Audit trail writer.

Every state change of a subscription goes through record_history so the
trail stays append-only and uniformly shaped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from billing.models import SubscriptionHistory

if TYPE_CHECKING:
    from typing import Any

    from django.contrib.auth.models import AbstractBaseUser

    from billing.models import Subscription


def record_history(
    subscription: Subscription,
    event_type: str,
    description: str,
    external_event_id: str | None = None,
    actor: AbstractBaseUser | None = None,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> SubscriptionHistory:
    """
    Append one entry to a subscription's history.

    Args:
        subscription: Subscription the entry belongs to
        event_type: A HistoryEventType value
        description: Human-readable summary
        external_event_id: Gateway id that caused the entry
        actor: Authenticated user, None for gateway or system events
        old_value / new_value: JSON-serializable snapshots

    Returns:
        The created SubscriptionHistory row
    """
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None
    return SubscriptionHistory.objects.create(
        subscription=subscription,
        event_type=event_type,
        description=description,
        external_event_id=external_event_id,
        actor=actor,
        old_value=old_value,
        new_value=new_value,
    )
