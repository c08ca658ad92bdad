"""
Back-Office Approval Platform
Program domain models.

Models:
    - WorkProgram: budgeted annual program of a department.
    - Event: activity run under a work program; carries a Drive thumbnail.
"""

from backoffice.models import db
from backoffice.models.base import ReviewableModel


class WorkProgram(ReviewableModel):
    """Departmental work program. ``remaining_funds`` is derived."""

    __tablename__ = "work_programs"

    APPROVAL_ENTITY_TYPE = "WORK_PROGRAM"
    KIND_LABEL = "Work program"
    WRITABLE_FIELDS = {
        "name": "text",
        "department": "text",
        "schedule": "text",
        "funds": "number",
        "used_funds": "number",
        "goal": "text",
        "period_id": "ref",
        "responsible_id": "ref",
    }
    REQUIRED_FIELDS = ("name", "department", "funds")
    FILTER_FIELDS = ("status", "department", "period_id")
    OWNER_FIELD = "user_id"

    name = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(100), nullable=False)
    schedule = db.Column(db.String(255), nullable=True)
    funds = db.Column(db.Float, nullable=False, default=0.0)
    used_funds = db.Column(db.Float, nullable=False, default=0.0)
    remaining_funds = db.Column(db.Float, nullable=False, default=0.0)
    goal = db.Column(db.Text, nullable=True)
    period_id = db.Column(db.String(36), nullable=True, index=True)
    responsible_id = db.Column(db.String(64), nullable=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)

    def apply_derived(self) -> None:
        self.remaining_funds = (self.funds or 0.0) - (self.used_funds or 0.0)

    def summary(self) -> dict:
        data = super().summary()
        data.update(department=self.department, funds=self.funds)
        return data

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["remaining_funds"] = self.remaining_funds
        return data

    def __repr__(self):
        return f"<WorkProgram {self.id}: {self.name}>"


class Event(ReviewableModel):
    __tablename__ = "events"

    APPROVAL_ENTITY_TYPE = "EVENT"
    KIND_LABEL = "Event"
    WRITABLE_FIELDS = {
        "name": "text",
        "description": "text",
        "goal": "text",
        "department": "text",
        "responsible_id": "ref",
        "work_program_id": "ref",
        "category_id": "ref",
        "period_id": "ref",
        "schedules": "json",
        "thumbnail": "text",
    }
    REQUIRED_FIELDS = ("name",)
    FILTER_FIELDS = ("status", "department", "work_program_id", "category_id", "period_id")
    ASSET_FIELDS = {"thumbnail": "event_thumbnail"}
    OWNER_FIELD = "user_id"

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    goal = db.Column(db.Text, nullable=True)
    department = db.Column(db.String(100), nullable=True)
    responsible_id = db.Column(db.String(64), nullable=True)
    work_program_id = db.Column(
        db.String(36), db.ForeignKey("work_programs.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    category_id = db.Column(db.String(36), nullable=True)
    period_id = db.Column(db.String(36), nullable=True, index=True)
    schedules = db.Column(db.JSON, nullable=True, comment="[{start, end, location, ...}]")
    thumbnail = db.Column(db.String(500), nullable=True, comment="Drive file id or URL")
    user_id = db.Column(db.String(64), nullable=True, index=True)

    def summary(self) -> dict:
        data = super().summary()
        data.update(department=self.department, thumbnail=self.thumbnail)
        return data

    def __repr__(self):
        return f"<Event {self.id}: {self.name}>"
