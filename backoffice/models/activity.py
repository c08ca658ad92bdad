"""
Back-Office Approval Platform
Activity log model.

Models:
    - ActivityLog: append-only record of user actions on back-office records.
"""

import uuid
from datetime import UTC, datetime

from backoffice.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_TYPES = frozenset({
    "CREATE",
    "UPDATE",
    "DELETE",
    "LOGIN",
    "LOGOUT",
    "APPROVE",
    "REJECT",
    "UPLOAD",
    "DOWNLOAD",
    "OTHER",
})


class ActivityLog(db.Model):
    """
    One row per user action.

    ``details`` carries ``{"oldData": ..., "newData": ...}`` snapshots for
    mutations.  The Python attribute is not called ``metadata`` because that
    name is reserved on declarative models; the column keeps it.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_user", "user_id"),
        db.Index("idx_activity_type", "activity_type"),
        db.Index("idx_activity_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(64), nullable=True)
    activity_type = db.Column(
        db.String(20), nullable=False,
        comment="CREATE | UPDATE | DELETE | APPROVE | REJECT | UPLOAD | …",
    )
    entity_type = db.Column(db.String(40), nullable=False, comment="Approval | Finance | Event | …")
    entity_id = db.Column(db.String(36), nullable=True)
    description = db.Column(db.Text, nullable=False, default="")
    details = db.Column("metadata", db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "activity_type": self.activity_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "metadata": self.details or {},
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.activity_type} {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_activity(
    *,
    activity_type: str,
    entity_type: str,
    entity_id: str | None = None,
    user_id: str | None = None,
    description: str = "",
    old_data: dict | None = None,
    new_data: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    Request IP / user agent are picked up from the active request when the
    caller does not pass them.
    """
    if ip_address is None and user_agent is None:
        from flask import has_request_context, request
        if has_request_context():
            ip_address = request.headers.get("X-Forwarded-For", request.remote_addr)
            user_agent = request.headers.get("User-Agent")

    details = {}
    if old_data is not None:
        details["oldData"] = old_data
    if new_data is not None:
        details["newData"] = new_data

    log = ActivityLog(
        user_id=user_id,
        activity_type=activity_type,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        description=description,
        details=details or None,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    )
    db.session.add(log)
    db.session.flush()
    return log
