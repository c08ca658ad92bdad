"""
Back-Office Approval Platform
Approval domain model.

Models:
    - Approval: one reviewer decision slot per (entity, submitter); mutable.
    - ApprovalHistory: immutable, append-only trail of approval status changes.

Approvals reference their record polymorphically through
(entity_type, entity_id).  There is no FK and no cascade: deleting a record
leaves its approvals in place unless the delete-cascade setting says
otherwise, and deleting an approval never touches history rows.
"""

import uuid
from datetime import UTC, datetime

from backoffice.models import db

# ── Constants ────────────────────────────────────────────────────────────────

APPROVAL_ENTITY_TYPES = frozenset({
    "WORK_PROGRAM",
    "EVENT",
    "FINANCE",
    "DOCUMENT",
    "DOCUMENT_PROPOSAL",
    "DOCUMENT_ACCOUNTABILITY_REPORT",
    "LETTER",
})

APPROVAL_STATUSES = frozenset({"PENDING", "APPROVED", "REJECTED", "CANCELLED"})

# Decisions a substantive edit reopens.
TERMINAL_APPROVAL_STATUSES = frozenset({"APPROVED", "REJECTED"})

HISTORY_ACTIONS = frozenset({"created", "status_changed", "deleted"})


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(UTC)


class Approval(db.Model):
    """
    Reviewer decision for one record.

    ``note`` is last-writer-wins; the full trail of status/note changes is
    kept in ``ApprovalHistory``.
    """

    __tablename__ = "approvals"
    __table_args__ = (
        db.Index("idx_approval_entity", "entity_type", "entity_id"),
        db.Index("idx_approval_status", "status"),
        db.Index("idx_approval_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    entity_type = db.Column(
        db.String(40), nullable=False,
        comment="WORK_PROGRAM | EVENT | FINANCE | DOCUMENT | LETTER | …",
    )
    entity_id = db.Column(db.String(36), nullable=False)
    user_id = db.Column(
        db.String(64), nullable=False,
        comment="Submitter of the record",
    )
    status = db.Column(
        db.String(20), nullable=False, default="PENDING",
        comment="PENDING | APPROVED | REJECTED | CANCELLED",
    )
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "status": self.status,
            "note": self.note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Approval {self.id}: {self.entity_type}/{self.entity_id} {self.status}>"


class ApprovalHistory(db.Model):
    """Append-only trail of approval transitions. Never updated or deleted."""

    __tablename__ = "approval_history"
    __table_args__ = (
        db.Index("idx_approval_history_approval", "approval_id"),
        db.Index("idx_approval_history_entity", "entity_type", "entity_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    # Plain column, not a FK: rows outlive the approval they describe.
    approval_id = db.Column(db.String(36), nullable=False)
    entity_type = db.Column(db.String(40), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(
        db.String(20), nullable=False, default="status_changed",
        comment="created | status_changed | deleted",
    )
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=True)
    note = db.Column(db.Text, nullable=True)
    actor_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "approval_id": self.approval_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "note": self.note,
            "actor_id": self.actor_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ApprovalHistory {self.approval_id}: {self.from_status}→{self.to_status}>"
