"""
Back-Office Approval Platform
Organisational structure model.

Structures are not reviewable; they carry two private Drive references
(the appointment decree and the structure diagram).
"""

import uuid
from datetime import UTC, datetime

from backoffice.models import db
from backoffice.models.base import RecordMixin


def _uuid():
    return str(uuid.uuid4())


class Structure(RecordMixin, db.Model):
    __tablename__ = "structures"

    KIND_LABEL = "Structure"
    WRITABLE_FIELDS = {
        "name": "text",
        "period_id": "ref",
        "decree": "text",
        "structure": "text",
    }
    REQUIRED_FIELDS = ("name",)
    FILTER_FIELDS = ("period_id",)
    ASSET_FIELDS = {"decree": "structure_decree", "structure": "structure_image"}

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    period_id = db.Column(db.String(36), nullable=True, index=True)
    decree = db.Column(db.String(500), nullable=True, comment="Drive file id or URL")
    structure = db.Column(db.String(500), nullable=True, comment="Drive file id or URL")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self):
        return f"<Structure {self.id}: {self.name}>"
