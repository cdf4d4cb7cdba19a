"""
Soft Delete Mixin.

Adds a ``deleted_at`` timestamp column and query helpers. Models that
include this mixin are marked as deleted rather than physically removed,
which keeps their audit trail (transitions, evaluations) intact.

Usage:
    class Request(SoftDeleteMixin, db.Model):
        ...

    req.soft_delete()
    Request.query_active().filter_by(owner_id=1).all()
"""

from datetime import datetime, timezone

from reqflow.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))
