"""
Record Blueprint — one set of routes for every managed record kind.

Routes (<kind> ∈ work-programs, events, finances, documents, letters, structures):
  GET    /api/v1/<kind>                  – list (page, limit, equality filters)
  POST   /api/v1/<kind>                  – create (JSON or multipart with files)
  GET    /api/v1/<kind>/<rid>            – single record
  PUT    /api/v1/<kind>/<rid>            – update (JSON or multipart with files)
  DELETE /api/v1/<kind>/<rid>            – delete
  GET    /api/v1/<kind>/<rid>/approvals  – approvals of the record, newest first

Files: multipart parts named after the record's file field (``proof``,
``thumbnail``, ``decree``, ``structure``).  Removal: ``remove_<field>=true``
(multipart) or ``"remove_assets": ["<field>"]`` (JSON).
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from backoffice.auth import require_user
from backoffice.blueprints import json_body
from backoffice.core.exceptions import ValidationError
from backoffice.models.registry import ROUTE_MODELS
from backoffice.services import entity_service
from backoffice.services.asset_reconciliation import UploadedFile
from backoffice.utils.helpers import parse_pagination

logger = logging.getLogger(__name__)

entity_bp = Blueprint("records", __name__, url_prefix="/api/v1")

# Hyphenated kinds must be quoted for the any() converter.
_KIND = "<any(" + ", ".join(repr(kind) for kind in sorted(ROUTE_MODELS)) + "):kind>"

_TRUTHY = {"1", "true", "yes", "on"}


# ── Request parsing ───────────────────────────────────────────────────────────


def _read_submission() -> tuple[dict, dict, set]:
    """Return (data, uploads, removals) from a JSON or multipart request."""
    if request.mimetype == "multipart/form-data":
        data = request.form.to_dict()
        uploads = {
            name: UploadedFile(
                content=storage.read(),
                filename=storage.filename or name,
                mime_type=storage.mimetype or "application/octet-stream",
            )
            for name, storage in request.files.items()
            if storage and storage.filename
        }
        removals = {
            key[len("remove_"):]
            for key, value in data.items()
            if key.startswith("remove_") and str(value).lower() in _TRUTHY
        }
        return data, uploads, removals

    data = json_body()
    return data, {}, _removal_list(data.get("remove_assets"))


def _removal_list(value) -> set:
    """``remove_assets`` as a set of field names; a bare string names one field."""
    if not value:
        return set()
    if isinstance(value, str):
        return {value}
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return set(value)
    raise ValidationError(
        "remove_assets must be a field name or a list of field names",
        details={"remove_assets": "invalid"},
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@entity_bp.route(f"/{_KIND}", methods=["GET"])
def list_records(kind):
    model = ROUTE_MODELS[kind]
    page, limit = parse_pagination(request.args)
    filters = {f: request.args.get(f) for f in model.FILTER_FIELDS if request.args.get(f)}
    return jsonify(entity_service.list_records(model, filters, page=page, limit=limit))


@entity_bp.route(f"/{_KIND}", methods=["POST"])
@require_user
def create_record(kind):
    model = ROUTE_MODELS[kind]
    data, uploads, _removals = _read_submission()
    record = entity_service.create_record(model, data, uploads=uploads, actor_id=g.user_id)
    return jsonify(record.to_dict()), 201


@entity_bp.route(f"/{_KIND}/<rid>", methods=["GET"])
def get_record(kind, rid):
    return jsonify(entity_service.get_record(ROUTE_MODELS[kind], rid).to_dict())


@entity_bp.route(f"/{_KIND}/<rid>", methods=["PUT"])
@require_user
def update_record(kind, rid):
    model = ROUTE_MODELS[kind]
    data, uploads, removals = _read_submission()
    record = entity_service.update_record(
        model, rid, data, uploads=uploads, removals=removals, actor_id=g.user_id,
    )
    return jsonify(record.to_dict())


@entity_bp.route(f"/{_KIND}/<rid>", methods=["DELETE"])
@require_user
def delete_record(kind, rid):
    entity_service.delete_record(ROUTE_MODELS[kind], rid, actor_id=g.user_id)
    return jsonify({"deleted": True, "id": rid})


@entity_bp.route(f"/{_KIND}/<rid>/approvals", methods=["GET"])
def record_approvals(kind, rid):
    items = entity_service.record_approvals(ROUTE_MODELS[kind], rid)
    return jsonify({"items": items, "total": len(items)})
