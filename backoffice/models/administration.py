"""
Back-Office Approval Platform
Administration domain models.

Models:
    - Letter: incoming/outgoing correspondence.
    - Document: filed document (proposals, accountability reports, ...).
"""

from backoffice.models import db
from backoffice.models.base import ReviewableModel

LETTER_TYPES = frozenset({"OUTGOING", "INCOMING"})
LETTER_PRIORITIES = frozenset({"NORMAL", "IMPORTANT", "URGENT"})


class Letter(ReviewableModel):
    """
    Correspondence record.

    Letters have no ``name``; approval reads display ``regarding`` instead.
    """

    __tablename__ = "letters"

    APPROVAL_ENTITY_TYPE = "LETTER"
    KIND_LABEL = "Letter"
    WRITABLE_FIELDS = {
        "number": "text",
        "regarding": "text",
        "origin": "text",
        "destination": "text",
        "date": "date",
        "type": "text",
        "priority": "text",
        "body": "text",
        "letter": "text",
        "notes": "text",
        "approved_by_id": "ref",
        "period_id": "ref",
        "event_id": "ref",
    }
    REQUIRED_FIELDS = ("number", "regarding", "date", "type")
    FILTER_FIELDS = ("status", "type", "priority", "period_id", "event_id")
    OWNER_FIELD = "created_by_id"
    ENUM_FIELDS = {"type": LETTER_TYPES, "priority": LETTER_PRIORITIES}

    number = db.Column(db.String(100), nullable=False)
    regarding = db.Column(db.String(500), nullable=False)
    origin = db.Column(db.String(255), nullable=True)
    destination = db.Column(db.String(255), nullable=True)
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(10), nullable=False, comment="OUTGOING | INCOMING")
    priority = db.Column(db.String(10), nullable=False, default="NORMAL")
    body = db.Column(db.Text, nullable=True)
    letter = db.Column(db.String(500), nullable=True, comment="Scanned letter reference")
    notes = db.Column(db.Text, nullable=True)
    approved_by_id = db.Column(db.String(64), nullable=True)
    period_id = db.Column(db.String(36), nullable=True, index=True)
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    created_by_id = db.Column(db.String(64), nullable=True, index=True)

    @property
    def display_name(self) -> str:
        return self.regarding or ""

    def summary(self) -> dict:
        data = super().summary()
        data.update(number=self.number, regarding=self.regarding, type=self.type)
        return data

    def __repr__(self):
        return f"<Letter {self.id}: {self.number}>"


class Document(ReviewableModel):
    __tablename__ = "documents"

    APPROVAL_ENTITY_TYPE = "DOCUMENT"
    KIND_LABEL = "Document"
    WRITABLE_FIELDS = {
        "name": "text",
        "document": "text",
        "document_type_id": "ref",
        "event_id": "ref",
        "letter_id": "ref",
    }
    REQUIRED_FIELDS = ("name", "document")
    FILTER_FIELDS = ("status", "document_type_id", "event_id", "letter_id")
    OWNER_FIELD = "user_id"

    name = db.Column(db.String(255), nullable=False)
    document = db.Column(db.String(500), nullable=False, comment="Document link")
    document_type_id = db.Column(db.String(36), nullable=True)
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    letter_id = db.Column(
        db.String(36), db.ForeignKey("letters.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    user_id = db.Column(db.String(64), nullable=True, index=True)

    def summary(self) -> dict:
        data = super().summary()
        data.update(document_type_id=self.document_type_id)
        return data

    def __repr__(self):
        return f"<Document {self.id}: {self.name}>"
