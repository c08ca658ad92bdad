"""
Record service for every managed back-office kind.

One generic implementation drives WorkProgram, Event, Finance, Document,
Letter and Structure through their model metadata (see
``backoffice.models.base``).

Save order for an update:
    1. reconcile Drive assets (uploads finish before any row is written)
    2. run the resubmission guard against the persisted values
    3. apply the payload and derived columns
    4. submit for review when ``status = PENDING`` was requested
    5. queue replaced Drive objects for deferred deletion
    6. log activity, commit
    7. delete Drive objects whose reference was removed
On any failure after step 1 the transaction is rolled back and the objects
uploaded in step 1 are deleted again; removed objects are left in place.
"""

from __future__ import annotations

import json
import logging
import math

from flask import current_app, has_app_context
from sqlalchemy import func, select

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models import db
from backoffice.models.base import ENTITY_STATUSES
from backoffice.models.registry import ENTITY_MODELS, is_reviewable
from backoffice.services import activity_service, approval_service, approval_store, asset_cleanup
from backoffice.services.asset_reconciliation import AssetChange, build_reconciler
from backoffice.services.resubmission import guard_for
from backoffice.utils.drive_files import file_id_from
from backoffice.utils.helpers import commit_or_raise, parse_date

logger = logging.getLogger(__name__)


# ── Payload coercion ──────────────────────────────────────────────────────────


def _coerce_value(model, field: str, kind: str, value, errors: dict):
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    if kind == "number":
        try:
            return float(value)
        except (TypeError, ValueError):
            errors[field] = "must be a number"
            return None
    if kind == "date":
        parsed = parse_date(value)
        if parsed is None:
            errors[field] = "must be a date (YYYY-MM-DD)"
        return parsed
    if kind == "json":
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                errors[field] = "must be valid JSON"
                return None
        return value
    value = str(value).strip()
    allowed = model.ENUM_FIELDS.get(field)
    if allowed and value not in allowed:
        errors[field] = f"must be one of: {', '.join(sorted(allowed))}"
    return value


def clean_payload(model, data: dict, *, creating: bool) -> dict:
    """Keep writable fields, coerce by kind, validate enums/required fields.

    Asset fields are only written by the reconciliation step and are dropped
    from client payloads.

    Raises:
        ValidationError: with per-field details.
    """
    errors: dict[str, str] = {}
    cleaned = {}
    for field, kind in model.WRITABLE_FIELDS.items():
        if field not in data or field in model.ASSET_FIELDS:
            continue
        cleaned[field] = _coerce_value(model, field, kind, data[field], errors)

    if is_reviewable(model) and "status" in data and data["status"] not in (None, ""):
        if data["status"] not in ENTITY_STATUSES:
            errors["status"] = f"must be one of: {', '.join(sorted(ENTITY_STATUSES))}"
        else:
            cleaned["status"] = data["status"]

    required = model.REQUIRED_FIELDS if creating else [f for f in model.REQUIRED_FIELDS if f in cleaned]
    for field in required:
        if cleaned.get(field) is None and field not in errors:
            errors[field] = "is required"

    if errors:
        raise ValidationError(f"Invalid {model.KIND_LABEL.lower()} data", details=errors)
    return cleaned


def _config(key, default):
    if not has_app_context():
        return default
    return current_app.config.get(key, default)


def _approval_types(model) -> list[str]:
    return [t for t, m in ENTITY_MODELS.items() if m is model]


# ── Reads ─────────────────────────────────────────────────────────────────────


def get_record(model, record_id: str):
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(model.__name__, record_id)
    return record


def list_records(model, filters: dict | None = None, page: int = 1, limit: int = 10) -> dict:
    """Paginated records, newest first, filtered on ``FILTER_FIELDS`` equality."""
    conditions = []
    for field, value in (filters or {}).items():
        if field in model.FILTER_FIELDS and value not in (None, "", "all"):
            conditions.append(getattr(model, field) == value)

    total = db.session.execute(select(func.count(model.id)).where(*conditions)).scalar() or 0
    rows = db.session.execute(
        select(model)
        .where(*conditions)
        .order_by(model.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return {
        "items": [row.to_dict() for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def record_approvals(model, record_id: str) -> list[dict]:
    """Every approval of a record, newest first, flagged with the current one."""
    if not is_reviewable(model):
        raise ValidationError(f"{model.KIND_LABEL} records are not reviewed")
    record = get_record(model, record_id)
    current = approval_store.latest_for_entity(record.APPROVAL_ENTITY_TYPE, record.id, entity=record)
    approvals = []
    for entity_type in _approval_types(model):
        approvals.extend(approval_store.for_entity(entity_type, record.id))
    approvals.sort(key=lambda a: a.created_at, reverse=True)
    items = []
    for approval in approvals:
        data = approval.to_dict()
        data["is_current"] = current is not None and approval.id == current.id
        items.append(data)
    return items


# ── Writes ────────────────────────────────────────────────────────────────────


def _asset_changes(model, record, uploads: dict | None, removals) -> list[AssetChange]:
    uploads = uploads or {}
    removals = set(removals or ())
    unknown = (set(uploads) | removals) - set(model.ASSET_FIELDS)
    if unknown:
        raise ValidationError(
            f"{model.KIND_LABEL} has no file field(s): {', '.join(sorted(unknown))}",
            details={field: "unknown file field" for field in unknown},
        )
    changes = []
    for field, asset_class in model.ASSET_FIELDS.items():
        if field not in uploads and field not in removals:
            continue
        changes.append(AssetChange(
            field=field,
            asset_class=asset_class,
            current_ref=getattr(record, field, None) if record is not None else None,
            upload=uploads.get(field),
            remove=field in removals,
        ))
    return changes


def _owner_name(model, data: dict, record=None) -> str:
    name = data.get("name")
    if name:
        return name
    return record.display_name if record is not None else ""


def create_record(model, data: dict, *, uploads: dict | None = None, actor_id: str | None = None):
    """Create a record; ``status = PENDING`` opens exactly one approval.

    Kinds with ``review_on_create`` (events) are always created PENDING.
    """
    cleaned = clean_payload(model, data, creating=True)
    changes = _asset_changes(model, None, uploads, None)

    reconciler = build_reconciler() if changes else None
    outcomes = reconciler.reconcile_all(changes, _owner_name(model, cleaned)) if changes else []

    try:
        record = model()
        for field, value in cleaned.items():
            setattr(record, field, value)
        for outcome in outcomes:
            setattr(record, outcome.field, outcome.ref)
        if model.OWNER_FIELD and actor_id:
            setattr(record, model.OWNER_FIELD, actor_id)
        guard = guard_for(model)
        if guard is not None and guard.review_on_create:
            record.status = "PENDING"
        if is_reviewable(model) and not record.status:
            record.status = "DRAFT"
        record.apply_derived()
        db.session.add(record)
        db.session.flush()

        if guard is not None and record.status == "PENDING":
            note = guard.create_note if guard.review_on_create else None
            guard.submit_for_review(record, submitter_id=actor_id or "system", actor_id=actor_id, note=note)

        activity_service.log_activity(
            activity_type="CREATE",
            entity_type=model.__name__,
            entity_id=record.id,
            user_id=actor_id,
            description=f"Created {model.KIND_LABEL.lower()} {record.display_name}".strip(),
            new_data=record.snapshot(),
        )
        commit_or_raise(model.__name__)
    except Exception:
        db.session.rollback()
        if reconciler:
            reconciler.discard(outcomes)
        raise

    logger.info("%s %s created (status=%s)", model.__name__, record.id, getattr(record, "status", None))
    return record


def update_record(
    model,
    record_id: str,
    data: dict,
    *,
    uploads: dict | None = None,
    removals=None,
    actor_id: str | None = None,
):
    """Update a record: assets first, then guard, payload, review, cleanup queue."""
    record = get_record(model, record_id)
    cleaned = clean_payload(model, data, creating=False)
    changes = _asset_changes(model, record, uploads, removals)

    reconciler = build_reconciler() if changes else None
    outcomes = (
        reconciler.reconcile_all(changes, _owner_name(model, cleaned, record)) if changes else []
    )

    try:
        before = record.snapshot()
        for outcome in outcomes:
            if outcome.changed:
                cleaned[outcome.field] = outcome.ref

        requested_pending = cleaned.get("status") == "PENDING"
        guard = guard_for(model)
        if guard is not None:
            cleaned = guard.guard_update(record, cleaned, actor_id=actor_id)

        for field, value in cleaned.items():
            setattr(record, field, value)
        record.apply_derived()
        db.session.flush()

        if guard is not None and requested_pending:
            submitter = getattr(record, model.OWNER_FIELD, None) if model.OWNER_FIELD else None
            guard.submit_for_review(record, submitter_id=actor_id or submitter or "system", actor_id=actor_id)

        for outcome in outcomes:
            if outcome.obsolete_object_id:
                asset_cleanup.schedule_deletion(
                    [outcome.obsolete_object_id], outcome.asset_class, reason="replaced",
                )

        activity_service.log_activity(
            activity_type="UPDATE",
            entity_type=model.__name__,
            entity_id=record.id,
            user_id=actor_id,
            description=f"Updated {model.KIND_LABEL.lower()} {record.display_name}".strip(),
            old_data=before,
            new_data=record.snapshot(),
        )
        commit_or_raise(model.__name__)
    except Exception:
        db.session.rollback()
        if reconciler:
            reconciler.discard(outcomes)
        raise

    if reconciler:
        reconciler.delete_removed(outcomes)
    logger.info("%s %s updated", model.__name__, record.id)
    return record


def delete_record(model, record_id: str, *, actor_id: str | None = None) -> None:
    """Delete a record.

    Approvals and Drive objects are left alone unless
    ``ENTITY_DELETE_CASCADE_APPROVALS`` / ``ENTITY_DELETE_CASCADE_ASSETS``
    are on.
    """
    record = get_record(model, record_id)
    before = record.snapshot()

    try:
        if is_reviewable(model) and _config("ENTITY_DELETE_CASCADE_APPROVALS", False):
            for entity_type in _approval_types(model):
                approval_service.purge_for_entity(entity_type, record.id, actor_id=actor_id)

        if _config("ENTITY_DELETE_CASCADE_ASSETS", False):
            for field, asset_class in model.ASSET_FIELDS.items():
                object_id = file_id_from(getattr(record, field, None))
                if object_id:
                    asset_cleanup.schedule_deletion([object_id], asset_class, reason="entity_deleted")

        db.session.delete(record)
        db.session.flush()
        activity_service.log_activity(
            activity_type="DELETE",
            entity_type=model.__name__,
            entity_id=record_id,
            user_id=actor_id,
            description=f"Deleted {model.KIND_LABEL.lower()} {before.get('name') or record_id}",
            old_data=before,
        )
        commit_or_raise(model.__name__)
    except Exception:
        db.session.rollback()
        raise

    logger.info("%s %s deleted", model.__name__, record_id)
