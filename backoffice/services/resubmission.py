"""
Entity Resubmission Guard.

One guard per reviewable record kind, all with the same shape:

    has_changes(existing, data)
        True when a substantive field present in *data* differs from the
        persisted value after normalisation.  ``status`` never counts.

    guard_update(existing, data)
        Substantive edit of a record whose authoritative approval is
        APPROVED/REJECTED → that approval goes back to PENDING with
        "<Kind> updated and resubmitted for approval" and the returned
        payload carries ``status = PENDING``.

    submit_for_review(entity)
        Explicit request for review.  ``append`` kinds add a new PENDING
        approval unless the latest one is already PENDING; ``upsert`` kinds
        move the latest approval to PENDING or create one.

    review_on_create
        Kinds that go to review as soon as they are created (events):
        the record service creates them PENDING with an open approval.

Everything here flushes only; the record service owns the transaction.
"""

from __future__ import annotations

import json
import logging

from backoffice.models.administration import Document, Letter
from backoffice.models.approval import TERMINAL_APPROVAL_STATUSES, Approval
from backoffice.models.finance import Finance
from backoffice.models.program import Event, WorkProgram
from backoffice.services import approval_service, approval_store
from backoffice.utils.helpers import parse_date

logger = logging.getLogger(__name__)

SUBMISSION_MODES = ("append", "upsert")


def _normalise(kind: str, value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    if kind == "date":
        parsed = parse_date(value)
        return parsed if parsed is not None else value
    if kind == "number":
        try:
            return float(value)
        except (TypeError, ValueError):
            return value
    if kind == "json":
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return value
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


class ResubmissionGuard:
    """Change detection + approval reset for one record kind."""

    def __init__(
        self,
        model,
        fields: tuple[str, ...],
        submission_mode: str = "append",
        review_on_create: bool = False,
    ):
        if submission_mode not in SUBMISSION_MODES:
            raise ValueError(f"Unknown submission mode: {submission_mode}")
        self.model = model
        self.entity_type = model.APPROVAL_ENTITY_TYPE
        self.label = model.KIND_LABEL
        self.fields = tuple(f for f in fields if f != "status")
        self.submission_mode = submission_mode
        self.review_on_create = review_on_create

    @property
    def resubmit_note(self) -> str:
        return f"{self.label} updated and resubmitted for approval"

    @property
    def submit_note(self) -> str:
        return f"{self.label} submitted for approval"

    @property
    def create_note(self) -> str:
        return f"{self.label} created and pending approval"

    # ── Change detection ──────────────────────────────────────────────────

    def changed_fields(self, existing, data: dict) -> list[str]:
        changed = []
        for field in self.fields:
            if field not in data:
                continue
            kind = self.model.WRITABLE_FIELDS.get(field, "text")
            if _normalise(kind, data[field]) != _normalise(kind, getattr(existing, field, None)):
                changed.append(field)
        return changed

    def has_changes(self, existing, data: dict) -> bool:
        return bool(self.changed_fields(existing, data))

    # ── Workflow ──────────────────────────────────────────────────────────

    def guard_update(self, existing, data: dict, actor_id: str | None = None) -> dict:
        """Return the payload to persist, reopening a decided approval if needed."""
        changed = self.changed_fields(existing, data)
        if not changed:
            return data

        latest = approval_store.latest_for_entity(self.entity_type, existing.id, entity=existing)
        if latest is None or latest.status not in TERMINAL_APPROVAL_STATUSES:
            return data

        approval_service.reopen_approval(latest, note=self.resubmit_note, actor_id=actor_id)
        logger.info(
            "%s %s resubmitted (approval %s was %s; changed: %s)",
            self.entity_type, existing.id, latest.id, latest.status, ", ".join(changed),
        )
        guarded = dict(data)
        guarded["status"] = "PENDING"
        return guarded

    def submit_for_review(
        self, entity, submitter_id: str, actor_id: str | None = None, note: str | None = None,
    ) -> Approval | None:
        """Open or refresh the record's approval. Returns the approval, or None if suppressed."""
        note = note or self.submit_note
        latest = approval_store.latest_for_entity(self.entity_type, entity.id, entity=entity)

        if self.submission_mode == "append":
            if latest is not None and latest.status == "PENDING":
                logger.debug("%s %s already pending review (approval %s)",
                             self.entity_type, entity.id, latest.id)
                return None
            return approval_service.open_approval(
                entity, submitter_id=submitter_id, note=note, actor_id=actor_id,
            )

        if latest is None:
            return approval_service.open_approval(
                entity, submitter_id=submitter_id, note=note, actor_id=actor_id,
            )
        if latest.status != "PENDING":
            approval_service.reopen_approval(latest, note=note, actor_id=actor_id)
        entity.current_approval_id = latest.id
        return latest


# ── Registry ──────────────────────────────────────────────────────────────────

GUARDS = {
    WorkProgram: ResubmissionGuard(
        WorkProgram,
        ("name", "department", "schedule", "funds", "used_funds", "goal",
         "period_id", "responsible_id"),
        submission_mode="upsert",
    ),
    Event: ResubmissionGuard(
        Event,
        ("name", "description", "goal", "department", "responsible_id",
         "work_program_id", "category_id", "schedules"),
        submission_mode="append",
        review_on_create=True,
    ),
    Finance: ResubmissionGuard(
        Finance,
        ("name", "amount", "description", "date", "category_id", "type",
         "period_id", "event_id", "proof"),
        submission_mode="append",
    ),
    Document: ResubmissionGuard(
        Document,
        ("name", "event_id", "letter_id", "document_type_id", "document"),
        submission_mode="append",
    ),
    Letter: ResubmissionGuard(
        Letter,
        ("number", "regarding", "origin", "destination", "date", "type", "priority",
         "body", "letter", "notes", "approved_by_id", "period_id", "event_id"),
        submission_mode="upsert",
    ),
}


def guard_for(model) -> ResubmissionGuard | None:
    return GUARDS.get(model)
