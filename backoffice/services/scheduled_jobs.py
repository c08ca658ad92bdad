"""
Back-Office Approval Platform
Scheduled Jobs.

Jobs:
    - asset_cleanup: deletes Drive objects queued by record saves/deletes
"""

from __future__ import annotations

import logging
from typing import Any

from backoffice.services import asset_cleanup
from backoffice.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("asset_cleanup")
def process_asset_cleanup(app) -> dict[str, Any]:
    """Delete Drive objects whose cleanup delay has elapsed."""
    gateway = app.extensions["drive_gateway"]
    return asset_cleanup.process_due(gateway)
