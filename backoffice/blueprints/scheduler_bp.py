"""
Scheduler Blueprint — manual control of background jobs.

Routes:
  GET  /api/v1/scheduler/jobs                 – registered jobs + DB status
  POST /api/v1/scheduler/jobs/<name>/run      – run a job now
  POST /api/v1/scheduler/jobs/<name>/toggle   – body: { enabled: bool }
"""

import logging

from flask import Blueprint, jsonify

from backoffice.auth import require_role
from backoffice.blueprints import json_body
from backoffice.services.scheduler_service import SchedulerService, get_registered_jobs
from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)

scheduler_bp = Blueprint("scheduler", __name__, url_prefix="/api/v1/scheduler")


@scheduler_bp.route("/jobs", methods=["GET"])
def list_jobs():
    """List all registered jobs with their status."""
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs)})


@scheduler_bp.route("/jobs/<job_name>/run", methods=["POST"])
@require_role("admin")
def run_job(job_name):
    """Manually trigger a scheduled job."""
    if job_name not in get_registered_jobs():
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    result = SchedulerService.run_job(job_name)
    return jsonify(result)


@scheduler_bp.route("/jobs/<job_name>/toggle", methods=["POST"])
@require_role("admin")
def toggle_job(job_name):
    data = json_body()
    if not isinstance(data.get("enabled"), bool):
        return api_error(E.VALIDATION_REQUIRED, "enabled must be a boolean",
                         details={"enabled": "required"})
    job = SchedulerService.toggle_job(job_name, data["enabled"])
    if job is None:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(job)
