"""
Approval Mutation Service.

Public operations (each commits, or rolls back and re-raises):
    create_approval   open a review slot for a record
    update_approval   record a reviewer decision and sync the record's status
    delete_approval   hard delete, repointing the record's current approval

Flush-only building blocks used by the resubmission guard, which runs inside
the record service's transaction:
    open_approval, reopen_approval

Design decisions:
    - Every status change appends an ``ApprovalHistory`` row.  History rows
      survive deletion of the approval.
    - The status synchronizer runs in the same transaction as the approval
      update; a failing record write rolls both back.
    - Activity logging runs after the business rows are flushed, inside a
      SAVEPOINT (see ``activity_service.log_activity``).
    - Conflict policy is ``APPROVAL_UNIQUENESS``: "submitter" blocks a second
      approval by the same submitter for the same record; "entity" blocks a
      new approval while any approval of the record is PENDING.
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context

from backoffice.core.exceptions import ConflictError, NotFoundError, ValidationError
from backoffice.models import db
from backoffice.models.approval import (
    APPROVAL_ENTITY_TYPES,
    APPROVAL_STATUSES,
    Approval,
    ApprovalHistory,
)
from backoffice.models.registry import model_for
from backoffice.services import activity_service, approval_store, entity_status_sync

logger = logging.getLogger(__name__)

APPROVAL_ACTIVITY_ENTITY = "Approval"

_DECISION_ACTIVITY = {
    "APPROVED": "APPROVE",
    "REJECTED": "REJECT",
}


# ── Private helpers ────────────────────────────────────────────────────────────


def _uniqueness_policy() -> str:
    if not has_app_context():
        return "submitter"
    return current_app.config.get("APPROVAL_UNIQUENESS", "submitter")


def _validate_entity_type(entity_type: str) -> None:
    if entity_type not in APPROVAL_ENTITY_TYPES:
        raise ValidationError(
            f"Invalid entity_type '{entity_type}'",
            details={"entity_type": f"Must be one of: {', '.join(sorted(APPROVAL_ENTITY_TYPES))}"},
        )


def _validate_status(status: str) -> None:
    if status not in APPROVAL_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'",
            details={"status": f"Must be one of: {', '.join(sorted(APPROVAL_STATUSES))}"},
        )


def _load_entity(entity_type: str, entity_id: str):
    model = model_for(entity_type)
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(model.__name__, entity_id)
    return entity


def _record_history(approval: Approval, *, action: str, from_status, to_status, note, actor_id):
    db.session.add(ApprovalHistory(
        approval_id=approval.id,
        entity_type=approval.entity_type,
        entity_id=approval.entity_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        note=note,
        actor_id=actor_id,
    ))
    db.session.flush()


def _snapshot(approval: Approval) -> dict:
    return {"status": approval.status, "note": approval.note}


# ── Flush-only building blocks ─────────────────────────────────────────────────


def open_approval(
    entity,
    *,
    submitter_id: str,
    note: str | None = None,
    status: str = "PENDING",
    actor_id: str | None = None,
    entity_type: str | None = None,
) -> Approval:
    """Insert an approval for *entity* and point the entity at it. No commit.

    *entity_type* defaults to the model's own type; document sub-types
    (DOCUMENT_PROPOSAL, ...) pass theirs explicitly.
    """
    approval = approval_store.create(
        entity_type=entity_type or entity.APPROVAL_ENTITY_TYPE,
        entity_id=entity.id,
        user_id=submitter_id,
        status=status,
        note=note,
    )
    entity.current_approval_id = approval.id
    _record_history(
        approval, action="created", from_status=None, to_status=status,
        note=note, actor_id=actor_id or submitter_id,
    )
    return approval


def reopen_approval(approval: Approval, *, note: str, actor_id: str | None = None) -> Approval:
    """Reset an existing approval to PENDING with *note*. No commit, no status sync."""
    previous = approval.status
    approval_store.update(approval.id, status="PENDING", note=note)
    _record_history(
        approval, action="status_changed", from_status=previous, to_status="PENDING",
        note=note, actor_id=actor_id,
    )
    return approval


# ── Public API ─────────────────────────────────────────────────────────────────


def create_approval(
    entity_type: str,
    entity_id: str,
    submitter_id: str,
    note: str | None = None,
    status: str = "PENDING",
    actor_id: str | None = None,
) -> Approval:
    """Create an approval for an existing record.

    Raises:
        ValidationError: unknown entity type or status.
        NotFoundError:   the referenced record does not exist.
        ConflictError:   an existing approval blocks creation.
    """
    _validate_entity_type(entity_type)
    _validate_status(status)
    if not submitter_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})

    entity = _load_entity(entity_type, entity_id)

    if _uniqueness_policy() == "entity":
        if approval_store.pending_exists(entity_type, entity_id):
            raise ConflictError(
                "Approval", "entity_id", entity_id,
                message="A pending approval already exists for this entity",
            )
    elif approval_store.find(entity_type, entity_id, submitter_id) is not None:
        raise ConflictError(
            "Approval", "entity_id", entity_id,
            message="Approval already exists for this entity",
        )

    try:
        approval = open_approval(
            entity, submitter_id=submitter_id, note=note, status=status,
            actor_id=actor_id, entity_type=entity_type,
        )
        activity_service.log_activity(
            activity_type="CREATE",
            entity_type=APPROVAL_ACTIVITY_ENTITY,
            entity_id=approval.id,
            user_id=actor_id or submitter_id,
            description=f"Created approval for {entity_type} {entity_id}",
            new_data=approval.to_dict(),
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Approval %s created for %s %s", approval.id, entity_type, entity_id)
    return approval


def update_approval(
    approval_id: str,
    status: str,
    note: str | None = None,
    actor_id: str | None = None,
) -> Approval:
    """Persist a reviewer decision and sync the record's status.

    Raises:
        NotFoundError:   unknown approval id.
        ValidationError: unknown status.
    """
    _validate_status(status)
    approval = approval_store.find_by_id(approval_id)
    if approval is None:
        raise NotFoundError("Approval", approval_id)

    before = _snapshot(approval)
    try:
        approval_store.update(approval.id, status=status, note=note)
        _record_history(
            approval, action="status_changed", from_status=before["status"],
            to_status=status, note=note, actor_id=actor_id,
        )
        entity_status_sync.apply(approval, status)
        activity_service.log_activity(
            activity_type=_DECISION_ACTIVITY.get(status, "UPDATE"),
            entity_type=APPROVAL_ACTIVITY_ENTITY,
            entity_id=approval.id,
            user_id=actor_id,
            description=f"Approval {before['status']} → {status}",
            old_data=before,
            new_data=_snapshot(approval),
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Approval %s: %s → %s", approval.id, before["status"], status)
    return approval


def delete_approval(approval_id: str, actor_id: str | None = None) -> None:
    """Hard delete. The record's status is left untouched."""
    approval = approval_store.find_by_id(approval_id)
    if approval is None:
        raise NotFoundError("Approval", approval_id)

    before = approval.to_dict()
    entity_type, entity_id = approval.entity_type, approval.entity_id
    try:
        _record_history(
            approval, action="deleted", from_status=approval.status, to_status=None,
            note=approval.note, actor_id=actor_id,
        )
        approval_store.delete(approval.id)

        model = model_for(entity_type)
        entity = db.session.get(model, entity_id) if model else None
        if entity is not None and entity.current_approval_id == approval_id:
            remaining = approval_store.for_entity(entity_type, entity_id)
            entity.current_approval_id = remaining[0].id if remaining else None
            db.session.flush()

        activity_service.log_activity(
            activity_type="DELETE",
            entity_type=APPROVAL_ACTIVITY_ENTITY,
            entity_id=approval_id,
            user_id=actor_id,
            description=f"Deleted approval for {entity_type} {entity_id}",
            old_data=before,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Approval %s deleted", approval_id)


def purge_for_entity(entity_type: str, entity_id: str, actor_id: str | None = None) -> int:
    """Delete every approval of a record (history kept). Flush only."""
    approvals = approval_store.for_entity(entity_type, entity_id)
    for approval in approvals:
        _record_history(
            approval, action="deleted", from_status=approval.status, to_status=None,
            note=approval.note, actor_id=actor_id,
        )
        approval_store.delete(approval.id)
    if approvals:
        logger.info("Purged %d approval(s) of %s %s", len(approvals), entity_type, entity_id)
    return len(approvals)


def history(approval_id: str) -> list[dict]:
    """Status trail of one approval, oldest first (works after deletion)."""
    rows = (
        ApprovalHistory.query
        .filter_by(approval_id=approval_id)
        .order_by(ApprovalHistory.created_at.asc(), ApprovalHistory.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]
