"""
Model mixins providing reusable behaviour for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    AppendOnlyMixin: Insert-only rows (audit trails)

Usage:
    from core.models import BaseModel
    from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin

    class AuditEntry(UUIDPrimaryKeyMixin, AppendOnlyMixin, BaseModel):
        message = models.TextField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Identifiers are handed to the payment gateway (external references) and
    to API clients, so they must not reveal record counts or ordering.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID v4)",
    )

    class Meta:
        abstract = True


class AppendOnlyMixin(models.Model):
    """
    Make a model insert-only.

    Saving an instance that already exists in the database raises, as does
    deleting it. Queryset-level ``update()``/``delete()`` bypass model
    methods and must not be used on these tables.

    Usage:
        entry = AuditEntry.objects.create(message="created")
        entry.message = "edited"
        entry.save()  # raises PermissionError
    """

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise PermissionError(
                f"{self.__class__.__name__} rows are append-only and cannot be modified"
            )
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> None:
        raise PermissionError(
            f"{self.__class__.__name__} rows are append-only and cannot be deleted"
        )
