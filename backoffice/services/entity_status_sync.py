"""
Entity Status Synchronizer.

Maps a reviewer decision onto the referenced record's publication status:

    APPROVED   → PUBLISH
    REJECTED   → DRAFT
    CANCELLED  → DRAFT     ("needs revision")
    PENDING    → PENDING   ("returned")

The CANCELLED/PENDING rows apply only while ``SYNC_REVISION_DECISIONS`` is
on.  Unknown entity types and missing rows are logged and skipped.  A
failing write propagates so the caller's approval update rolls back with it.
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context

from backoffice.models import db
from backoffice.models.registry import model_for

logger = logging.getLogger(__name__)

DECISION_STATUS = {
    "APPROVED": "PUBLISH",
    "REJECTED": "DRAFT",
}

REVISION_DECISION_STATUS = {
    "CANCELLED": "DRAFT",
    "PENDING": "PENDING",
}


def _sync_revisions() -> bool:
    if not has_app_context():
        return True
    return bool(current_app.config.get("SYNC_REVISION_DECISIONS", True))


def target_status(decision: str) -> str | None:
    """Entity status for *decision*, or None when the decision is not synced."""
    if decision in DECISION_STATUS:
        return DECISION_STATUS[decision]
    if _sync_revisions():
        return REVISION_DECISION_STATUS.get(decision)
    return None


def apply(approval, decision: str | None = None) -> bool:
    """Set the status of the record *approval* points at.

    *decision* defaults to the approval's own status.  Returns True when a
    row was written.
    """
    decision = decision or approval.status
    entity_type, entity_id = approval.entity_type, approval.entity_id
    status = target_status(decision)
    if status is None:
        return False

    model = model_for(entity_type)
    if model is None:
        logger.warning("Status sync skipped: unknown entity type %r (id=%s)", entity_type, entity_id)
        return False

    entity = db.session.get(model, entity_id)
    if entity is None:
        logger.warning("Status sync skipped: %s id=%s not found", entity_type, entity_id)
        return False

    entity.status = status
    db.session.flush()
    logger.info("%s %s status → %s (decision %s)", entity_type, entity_id, status, decision)
    return True
