"""
Reusable abstract model mixins.

Mixins:
    SoftDeleteMixin: Tombstone support (is_deleted, deleted_at)

Usage:
    class Message(SoftDeleteMixin, BaseModel):
        ...

    message.soft_delete()
    assert message.is_deleted
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteMixin(models.Model):
    """
    Soft delete support for models.

    Instead of removing the row, marks it deleted so that references to it
    (reply chains, audit) remain resolvable. Subclasses that need to clear
    content on deletion override ``clear_for_tombstone``.

    Fields:
        is_deleted: Whether this record has been soft deleted
        deleted_at: When the record was soft deleted

    Note:
        No default manager filtering is applied. Chat tombstones stay in
        conversation snapshots and are rendered as "message deleted".
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def clear_for_tombstone(self) -> list[str]:
        """
        Hook for subclasses to wipe content when tombstoned.

        Returns:
            Names of the fields that were modified and need saving
        """
        return []

    def soft_delete(self) -> bool:
        """
        Mark this record as deleted.

        Repeated calls are a no-op.

        Returns:
            True if the record changed, False if it was already deleted
        """
        if self.is_deleted:
            return False
        self.is_deleted = True
        self.deleted_at = timezone.now()
        changed = self.clear_for_tombstone()
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at", *changed])
        return True

