"""
Activity log service.

``log_activity`` is called after every approval and record mutation.  It
runs inside a SAVEPOINT so a failing audit write is rolled back on its own
and never takes the business mutation down with it.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, time

from sqlalchemy import func, select

from backoffice.core.exceptions import ValidationError
from backoffice.models import db
from backoffice.models.activity import ACTIVITY_TYPES, ActivityLog, write_activity

logger = logging.getLogger(__name__)


def log_activity(
    *,
    activity_type: str,
    entity_type: str,
    entity_id: str | None = None,
    user_id: str | None = None,
    description: str = "",
    old_data: dict | None = None,
    new_data: dict | None = None,
) -> ActivityLog | None:
    """Append an activity row; return None (and log) if the write fails."""
    try:
        with db.session.begin_nested():
            return write_activity(
                activity_type=activity_type,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                description=description,
                old_data=old_data,
                new_data=new_data,
            )
    except Exception:
        logger.exception(
            "Activity log write failed: %s %s/%s", activity_type, entity_type, entity_id,
        )
        return None


def list_activities(
    *,
    activity_type: str | None = None,
    user_id: str | None = None,
    entity_type: str | None = None,
    start_date=None,
    end_date=None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Paginated activity rows, newest first.

    ``start_date``/``end_date`` are inclusive calendar dates.

    Raises:
        ValidationError: unknown activity type or inverted date range.
    """
    if activity_type and activity_type not in ACTIVITY_TYPES:
        raise ValidationError(
            f"Invalid activity type '{activity_type}'",
            details={"activity_type": f"Must be one of: {', '.join(sorted(ACTIVITY_TYPES))}"},
        )
    if start_date and end_date and start_date > end_date:
        raise ValidationError(
            "start_date must not be after end_date",
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )

    filters = []
    if activity_type:
        filters.append(ActivityLog.activity_type == activity_type)
    if user_id:
        filters.append(ActivityLog.user_id == user_id)
    if entity_type:
        filters.append(ActivityLog.entity_type == entity_type)
    if start_date:
        filters.append(ActivityLog.created_at >= datetime.combine(start_date, time.min, tzinfo=UTC))
    if end_date:
        filters.append(ActivityLog.created_at <= datetime.combine(end_date, time.max, tzinfo=UTC))

    total = db.session.execute(select(func.count(ActivityLog.id)).where(*filters)).scalar() or 0
    rows = db.session.execute(
        select(ActivityLog)
        .where(*filters)
        .order_by(ActivityLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return {
        "items": [row.to_dict() for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }
