"""
Shared model bases for back-office records.

RecordMixin         — field metadata + generic serialisation for any record
                      that is written through ``entity_service``.
ReviewableModel     — abstract base for the five record kinds gated by the
                      approval workflow (WorkProgram, Event, Finance,
                      Document, Letter).

Field metadata lives on each concrete class:

    WRITABLE_FIELDS   {field: kind}   kind ∈ text | number | date | json | ref
    REQUIRED_FIELDS   fields that must be present on create
    FILTER_FIELDS     equality filters accepted by list endpoints
    ASSET_FIELDS      {field: asset_class} for Drive-hosted references
    OWNER_FIELD       column receiving the acting user's id on create
"""

import uuid
from datetime import UTC, date, datetime

from backoffice.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ENTITY_STATUSES = frozenset({"DRAFT", "PENDING", "PUBLISH", "PRIVATE", "ARCHIVE"})

FIELD_KINDS = frozenset({"text", "number", "date", "json", "ref"})


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(UTC)


def _serialise(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class RecordMixin:
    """Field metadata and serialisation shared by every managed record."""

    KIND_LABEL = "Record"
    WRITABLE_FIELDS: dict = {}
    REQUIRED_FIELDS: tuple = ()
    FILTER_FIELDS: tuple = ()
    ASSET_FIELDS: dict = {}
    ENUM_FIELDS: dict = {}
    OWNER_FIELD: str | None = None

    @property
    def display_name(self) -> str:
        return getattr(self, "name", None) or ""

    def apply_derived(self) -> None:
        """Recompute derived columns after a write. No-op by default."""

    def snapshot(self) -> dict:
        """Plain dict of writable fields — used for activity old/new data."""
        data = {field: _serialise(getattr(self, field, None)) for field in self.WRITABLE_FIELDS}
        if hasattr(self, "status"):
            data["status"] = self.status
        return data

    def to_dict(self) -> dict:
        data = {"id": self.id}
        data.update(self.snapshot())
        if self.OWNER_FIELD:
            data[self.OWNER_FIELD] = getattr(self, self.OWNER_FIELD, None)
        data["created_at"] = _serialise(self.created_at)
        data["updated_at"] = _serialise(self.updated_at)
        return data


class ReviewableModel(RecordMixin, db.Model):
    """Abstract base for records whose publication is gated by approval.

    ``status`` is the record's own publication state and is independent of
    any Approval row's status.  ``current_approval_id`` points at the
    authoritative approval; Approval rows are linked polymorphically via
    (entity_type, entity_id) and are never FK-cascaded.
    """

    __abstract__ = True

    APPROVAL_ENTITY_TYPE = ""

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    status = db.Column(
        db.String(20), nullable=False, default="DRAFT",
        comment="DRAFT | PENDING | PUBLISH | PRIVATE | ARCHIVE",
    )
    current_approval_id = db.Column(
        db.String(36), nullable=True,
        comment="Authoritative approval for this record (approvals.id)",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def summary(self) -> dict:
        """Read-only projection embedded into approval reads."""
        return {"id": self.id, "name": self.display_name, "status": self.status}

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity_type"] = self.APPROVAL_ENTITY_TYPE
        data["current_approval_id"] = self.current_approval_id
        return data
