"""
Approval Record Store.

Persistence-only access to ``Approval`` rows: lookups, listing with a
read-only projection of the referenced record, and raw create/update/delete.

Design decisions:
    - Writes ``flush`` only; the calling service owns the transaction.
    - No uniqueness is enforced here.  Conflict policy lives in
      ``approval_service``.
    - Reads never mutate the referenced record.  The projection is batched
      per entity type (one query per type on a page, not one per row).
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from sqlalchemy import func, select

from backoffice.core.exceptions import NotFoundError
from backoffice.models import db
from backoffice.models.approval import Approval
from backoffice.models.registry import model_for

logger = logging.getLogger(__name__)


# ── Lookups ────────────────────────────────────────────────────────────────────


def find(entity_type: str, entity_id: str, user_id: str) -> Approval | None:
    """Return the newest approval for (entity, submitter), if any."""
    stmt = (
        select(Approval)
        .where(
            Approval.entity_type == entity_type,
            Approval.entity_id == str(entity_id),
            Approval.user_id == str(user_id),
        )
        .order_by(Approval.created_at.desc())
        .limit(1)
    )
    return db.session.execute(stmt).scalars().first()


def find_by_id(approval_id: str) -> Approval | None:
    return db.session.get(Approval, approval_id)


def for_entity(entity_type: str, entity_id: str) -> list[Approval]:
    """All approvals of one record, newest first."""
    stmt = (
        select(Approval)
        .where(Approval.entity_type == entity_type, Approval.entity_id == str(entity_id))
        .order_by(Approval.created_at.desc(), Approval.id.desc())
    )
    return list(db.session.execute(stmt).scalars())


def latest_for_entity(entity_type: str, entity_id: str, entity=None) -> Approval | None:
    """Authoritative approval of a record.

    Uses the record's ``current_approval_id`` pointer when it is set and
    still resolves; otherwise falls back to the newest row by ``created_at``.
    """
    if entity is None:
        model = model_for(entity_type)
        entity = db.session.get(model, entity_id) if model else None

    pointer = getattr(entity, "current_approval_id", None)
    if pointer:
        approval = db.session.get(Approval, pointer)
        if approval is not None:
            return approval

    approvals = for_entity(entity_type, entity_id)
    return approvals[0] if approvals else None


def pending_exists(entity_type: str, entity_id: str) -> bool:
    stmt = select(func.count(Approval.id)).where(
        Approval.entity_type == entity_type,
        Approval.entity_id == str(entity_id),
        Approval.status == "PENDING",
    )
    return (db.session.execute(stmt).scalar() or 0) > 0


# ── Listing ────────────────────────────────────────────────────────────────────


def _projections(approvals: list[Approval]) -> dict[tuple[str, str], dict]:
    """Load the referenced records for a page of approvals, one query per type."""
    ids_by_model = defaultdict(set)
    for approval in approvals:
        model = model_for(approval.entity_type)
        if model is None:
            continue
        ids_by_model[model].add(approval.entity_id)

    found = {}
    for model, ids in ids_by_model.items():
        rows = db.session.execute(select(model).where(model.id.in_(ids))).scalars()
        for row in rows:
            found[(model.__tablename__, row.id)] = row.summary()
    return found


def project(approval: Approval, projections: dict | None = None) -> dict:
    """Approval dict plus ``entity`` summary and ``name_approval``."""
    if projections is None:
        projections = _projections([approval])
    model = model_for(approval.entity_type)
    entity = projections.get((model.__tablename__, approval.entity_id)) if model else None

    data = approval.to_dict()
    data["entity"] = entity
    data["name_approval"] = entity["name"] if entity else None
    return data


def list_approvals(
    status: str | None = None,
    entity_type: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Paginated approvals, newest first.

    ``status == "all"`` (or empty) disables the status filter.

    Returns:
        {"items": [...], "pagination": {page, limit, total, pages}}
    """
    stmt = select(Approval)
    count_stmt = select(func.count(Approval.id))
    if status and status != "all":
        stmt = stmt.where(Approval.status == status)
        count_stmt = count_stmt.where(Approval.status == status)
    if entity_type:
        stmt = stmt.where(Approval.entity_type == entity_type)
        count_stmt = count_stmt.where(Approval.entity_type == entity_type)

    total = db.session.execute(count_stmt).scalar() or 0
    stmt = (
        stmt.order_by(Approval.created_at.desc(), Approval.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    approvals = list(db.session.execute(stmt).scalars())
    projections = _projections(approvals)

    return {
        "items": [project(a, projections) for a in approvals],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


# ── Writes (flush only) ────────────────────────────────────────────────────────


def create(
    *,
    entity_type: str,
    entity_id: str,
    user_id: str,
    status: str = "PENDING",
    note: str | None = None,
) -> Approval:
    approval = Approval(
        entity_type=entity_type,
        entity_id=str(entity_id),
        user_id=str(user_id),
        status=status,
        note=note,
    )
    db.session.add(approval)
    db.session.flush()
    return approval


def update(approval_id: str, *, status: str, note: str | None) -> Approval:
    """Persist a new status/note. Raises NotFoundError for an unknown id."""
    approval = _require(approval_id)
    approval.status = status
    approval.note = note
    db.session.flush()
    return approval


def delete(approval_id: str) -> None:
    db.session.delete(_require(approval_id))
    db.session.flush()


def _require(approval_id: str) -> Approval:
    approval = db.session.get(Approval, approval_id)
    if approval is None:
        raise NotFoundError("Approval", approval_id)
    return approval
