"""
Reusable abstract model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of an auto-increment integer
    VersionedMixin: Version counter for optimistic concurrency control
    MetadataMixin: Free-form JSON metadata

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Booking(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        ...

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid
from typing import Any

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID as primary key.

    IDs are non-guessable and can be generated before the row is inserted,
    which lets services log and reference a record inside the transaction
    that creates it.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID)",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Version counter for optimistic concurrency control.

    Writers read the row, remember its version and update it with
    ``WHERE version = <remembered>``. Zero affected rows means another
    writer got there first. See payments.locks.save_versioned.

    Fields:
        version: Incremented on every versioned save
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version number for optimistic locking",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Holds provider-specific context that does not deserve its own column
    (gateway session ids, the event that created a record).
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Get a metadata value by key."""
        return self.metadata.get(key, default)

    def set_meta(self, key: str, value: Any) -> None:
        """Set a metadata value in memory. The caller persists it."""
        self.metadata[key] = value
