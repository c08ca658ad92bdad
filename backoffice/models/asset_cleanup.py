"""
Back-Office Approval Platform
Deferred Drive-object cleanup queue.

Models:
    - AssetCleanupTask: one Drive object scheduled for deletion.

Rows are written in the same transaction as the record that stops
referencing the object, so a rolled-back save never deletes anything and a
crash between commit and deletion never loses the cleanup.
"""

import uuid
from datetime import UTC, datetime

from backoffice.models import db

CLEANUP_REASONS = frozenset({"replaced", "entity_deleted"})
CLEANUP_STATUSES = frozenset({"queued", "done", "failed"})


class AssetCleanupTask(db.Model):
    __tablename__ = "asset_cleanup_tasks"
    __table_args__ = (
        db.Index("idx_asset_cleanup_due", "status", "not_before"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    object_id = db.Column(db.String(255), nullable=False, comment="Drive file id")
    asset_class = db.Column(db.String(40), nullable=False)
    reason = db.Column(db.String(20), nullable=False, default="replaced",
                       comment="replaced | entity_deleted")
    status = db.Column(db.String(20), nullable=False, default="queued",
                       comment="queued | done | failed")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    max_attempts = db.Column(db.Integer, nullable=False, default=3)
    not_before = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(UTC))
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(UTC))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(UTC),
                           onupdate=lambda: datetime.now(UTC))

    def to_dict(self):
        return {
            "id": self.id,
            "object_id": self.object_id,
            "asset_class": self.asset_class,
            "reason": self.reason,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "not_before": self.not_before.isoformat() if self.not_before else None,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<AssetCleanupTask {self.object_id} [{self.status}]>"
