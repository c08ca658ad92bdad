"""
Deferred Drive-object cleanup.

schedule_deletion   queue objects for deletion (flush only; rides the
                    caller's transaction so it commits with the record)
process_due         delete due objects through the Drive gateway, one
                    commit per task, exponential backoff between attempts
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from flask import current_app, has_app_context
from sqlalchemy import select

from backoffice.models import db
from backoffice.models.asset_cleanup import CLEANUP_REASONS, AssetCleanupTask

logger = logging.getLogger(__name__)

_BACKOFF_BASE_SECONDS = 30


def _config(key, default):
    if not has_app_context():
        return default
    return current_app.config.get(key, default)


def schedule_deletion(
    object_ids,
    asset_class: str,
    reason: str = "replaced",
    delay_seconds: float | None = None,
) -> list[AssetCleanupTask]:
    """Queue Drive objects for deletion after ``ASSET_DELETE_DELAY_SECONDS``."""
    if reason not in CLEANUP_REASONS:
        raise ValueError(f"Unknown cleanup reason: {reason}")
    if delay_seconds is None:
        delay_seconds = float(_config("ASSET_DELETE_DELAY_SECONDS", 2))
    max_attempts = int(_config("ASSET_CLEANUP_MAX_ATTEMPTS", 3))
    not_before = datetime.now(UTC) + timedelta(seconds=delay_seconds)

    tasks = []
    for object_id in object_ids:
        if not object_id:
            continue
        task = AssetCleanupTask(
            object_id=object_id,
            asset_class=asset_class,
            reason=reason,
            max_attempts=max_attempts,
            not_before=not_before,
        )
        db.session.add(task)
        tasks.append(task)
    if tasks:
        db.session.flush()
        logger.info("Queued %d %s object(s) for deletion (%s)", len(tasks), asset_class, reason)
    return tasks


def due_tasks(now: datetime | None = None, limit: int = 50) -> list[AssetCleanupTask]:
    now = now or datetime.now(UTC)
    stmt = (
        select(AssetCleanupTask)
        .where(AssetCleanupTask.status == "queued", AssetCleanupTask.not_before <= now)
        .order_by(AssetCleanupTask.not_before.asc())
        .limit(limit)
    )
    return list(db.session.execute(stmt).scalars())


def process_due(gateway=None, now: datetime | None = None, limit: int = 50) -> dict:
    """Delete every due object. Returns counters for the job run record."""
    gateway = gateway or current_app.extensions["drive_gateway"]
    now = now or datetime.now(UTC)
    results = {"processed": 0, "deleted": 0, "retrying": 0, "failed": 0}

    for task in due_tasks(now, limit):
        results["processed"] += 1
        task.attempts = (task.attempts or 0) + 1
        try:
            ok = gateway.delete(task.object_id)
            error = None if ok else "Drive delete returned failure"
        except Exception as exc:
            logger.exception("Cleanup of %s raised", task.object_id)
            ok, error = False, str(exc)[:500]

        if ok:
            task.status = "done"
            task.last_error = None
            results["deleted"] += 1
        elif task.attempts >= task.max_attempts:
            task.status = "failed"
            task.last_error = error
            results["failed"] += 1
            logger.error("Giving up on deleting %s after %d attempts", task.object_id, task.attempts)
        else:
            task.last_error = error
            task.not_before = now + timedelta(seconds=_BACKOFF_BASE_SECONDS * 2 ** (task.attempts - 1))
            results["retrying"] += 1
        db.session.commit()

    if results["processed"]:
        logger.info("Asset cleanup: %s", results)
    return results
