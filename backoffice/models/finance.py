"""
Back-Office Approval Platform
Finance domain model.

Models:
    - Finance: income/expense transaction with an optional Drive-hosted proof.
"""

from backoffice.models import db
from backoffice.models.base import ReviewableModel

FINANCE_TYPES = frozenset({"INCOME", "EXPENSE"})


class Finance(ReviewableModel):
    """Single finance transaction. ``proof`` is public once adopted."""

    __tablename__ = "finances"

    APPROVAL_ENTITY_TYPE = "FINANCE"
    KIND_LABEL = "Finance transaction"
    WRITABLE_FIELDS = {
        "name": "text",
        "amount": "number",
        "description": "text",
        "date": "date",
        "category_id": "ref",
        "type": "text",
        "period_id": "ref",
        "event_id": "ref",
        "proof": "text",
    }
    REQUIRED_FIELDS = ("name", "amount", "date", "type")
    FILTER_FIELDS = ("status", "type", "category_id", "period_id", "event_id")
    ASSET_FIELDS = {"proof": "finance_proof"}
    OWNER_FIELD = "user_id"
    ENUM_FIELDS = {"type": FINANCE_TYPES}

    name = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False)
    category_id = db.Column(db.String(36), nullable=True)
    type = db.Column(db.String(10), nullable=False, comment="INCOME | EXPENSE")
    period_id = db.Column(db.String(36), nullable=True, index=True)
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    proof = db.Column(db.String(500), nullable=True, comment="Drive file id or URL")
    user_id = db.Column(db.String(64), nullable=True, index=True)

    def summary(self) -> dict:
        data = super().summary()
        data.update(amount=self.amount, type=self.type)
        return data

    def __repr__(self):
        return f"<Finance {self.id}: {self.type} {self.amount}>"
