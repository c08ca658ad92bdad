"""
Activity Blueprint — read access to the activity log.

Routes:
  GET /api/v1/activities   – filters: activity_type, user_id, entity_type,
                             start_date, end_date (inclusive), page, limit
"""

import logging

from flask import Blueprint, jsonify, request

from backoffice.services import activity_service
from backoffice.utils.errors import E, api_error
from backoffice.utils.helpers import parse_date_input, parse_pagination

logger = logging.getLogger(__name__)

activity_bp = Blueprint("activities", __name__, url_prefix="/api/v1/activities")


@activity_bp.route("", methods=["GET"])
def list_activities():
    try:
        start_date = parse_date_input(request.args.get("start_date"))
        end_date = parse_date_input(request.args.get("end_date"))
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    page, limit = parse_pagination(request.args)
    result = activity_service.list_activities(
        activity_type=request.args.get("activity_type") or None,
        user_id=request.args.get("user_id") or None,
        entity_type=request.args.get("entity_type") or None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return jsonify(result)
