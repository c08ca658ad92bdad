"""Shared utility functions for services and blueprints.

parse_date:          returns None on bad input
parse_date_input:    raises ValueError on bad input (query-string filters)
parse_pagination:    page/limit from a mapping, clamped
commit_or_raise:     commit, translating IntegrityError into ConflictError
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from backoffice.core.exceptions import ConflictError
from backoffice.models import db

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.
    """
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


def parse_pagination(args, default_limit=DEFAULT_PAGE_SIZE):
    """Return ``(page, limit)`` from request args; bad values fall back to defaults."""
    try:
        page = int(args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(resource: str):
    """Commit the current session.

    IntegrityError → rollback + ``ConflictError`` (409).
    Anything else → rollback + re-raise (500 via the app handler).
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on %s commit: %s", resource, exc.orig)
        raise ConflictError(resource, "constraint", message="Duplicate or constraint violation") from exc
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on %s commit", resource)
        raise
