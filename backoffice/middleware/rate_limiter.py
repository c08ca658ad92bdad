"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.  The Limiter instance
is created in backoffice/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from backoffice.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

BULK_LIMIT = "10/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Bulk approval endpoint:  10/minute
        - Approval + record APIs:  60/minute
        - Activity log (reads):    200/minute

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bulk_view = app.view_functions.get("approvals.bulk_action")
    if bulk_view:
        app.view_functions["approvals.bulk_action"] = limiter.limit(BULK_LIMIT)(bulk_view)

    for bp_name in ("approvals", "records", "scheduler"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("activities")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    app.logger.info(
        "Rate limiter configured — bulk: %s, write: %s, read: %s",
        BULK_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
