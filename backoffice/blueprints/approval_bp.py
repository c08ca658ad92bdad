"""
Approval Blueprint.

Routes:
  GET    /api/v1/approvals                    – list (status, entity_type, page, limit)
  POST   /api/v1/approvals                    – create approval for a record
  GET    /api/v1/approvals/<aid>              – single approval with record projection
  PUT    /api/v1/approvals/<aid>              – reviewer decision (status + note)
  DELETE /api/v1/approvals/<aid>              – hard delete
  GET    /api/v1/approvals/<aid>/history      – status trail
  POST   /api/v1/approvals/bulk               – approve / reject / revision / return

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from backoffice.auth import require_role, require_user
from backoffice.blueprints import json_body
from backoffice.core.exceptions import NotFoundError
from backoffice.services import approval_service, approval_store, bulk_approval
from backoffice.utils.errors import E, api_error
from backoffice.utils.helpers import parse_pagination

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approvals", __name__, url_prefix="/api/v1/approvals")


@approval_bp.route("", methods=["GET"])
def list_approvals():
    page, limit = parse_pagination(request.args)
    result = approval_store.list_approvals(
        status=request.args.get("status") or None,
        entity_type=request.args.get("entity_type") or None,
        page=page,
        limit=limit,
    )
    return jsonify(result)


@approval_bp.route("", methods=["POST"])
@require_user
def create_approval():
    """Body: { entity_type, entity_id, note?, status?, user_id? }"""
    data = json_body()
    missing = [f for f in ("entity_type", "entity_id") if not data.get(f)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} is required",
                         details={f: "required" for f in missing})

    approval = approval_service.create_approval(
        data["entity_type"],
        str(data["entity_id"]),
        submitter_id=str(data.get("user_id") or g.user_id),
        note=data.get("note"),
        status=data.get("status") or "PENDING",
        actor_id=g.user_id,
    )
    return jsonify(approval_store.project(approval)), 201


@approval_bp.route("/<aid>", methods=["GET"])
def get_approval(aid):
    approval = approval_store.find_by_id(aid)
    if approval is None:
        raise NotFoundError("Approval", aid)
    return jsonify(approval_store.project(approval))


@approval_bp.route("/<aid>", methods=["PUT"])
@require_user
def update_approval(aid):
    """Body: { status, note? }"""
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})

    approval = approval_service.update_approval(
        aid, data["status"], data.get("note"), actor_id=g.user_id,
    )
    return jsonify(approval_store.project(approval))


@approval_bp.route("/<aid>", methods=["DELETE"])
@require_user
def delete_approval(aid):
    approval_service.delete_approval(aid, actor_id=g.user_id)
    return jsonify({"deleted": True, "id": aid})


@approval_bp.route("/<aid>/history", methods=["GET"])
def approval_history(aid):
    return jsonify({"approval_id": aid, "items": approval_service.history(aid)})


@approval_bp.route("/bulk", methods=["POST"])
@require_user
@require_role("admin")
def bulk_action():
    """Body: { approval_ids: [..], action: approve|reject|revision|return, note? }

    200 when every item succeeded; otherwise 207 with per-item details.
    """
    data = json_body()
    approval_ids = data.get("approval_ids")
    if not isinstance(approval_ids, list) or not approval_ids:
        return api_error(E.VALIDATION_REQUIRED, "approval_ids must be a non-empty list",
                         details={"approval_ids": "required"})
    if not data.get("action"):
        return api_error(E.VALIDATION_REQUIRED, "action is required", details={"action": "required"})

    result = bulk_approval.apply_bulk_or_raise(
        [str(i) for i in approval_ids], data["action"], note=data.get("note"), actor_id=g.user_id,
    )
    return jsonify(result.to_dict())
