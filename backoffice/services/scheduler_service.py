"""
Back-Office Approval Platform
Scheduler Service.

Lightweight background job scheduler.  Jobs are plain functions registered
via decorator and executed inside the Flask app context, either manually
through the API or by the optional interval thread
(``SCHEDULER_AUTOSTART``).

Architecture:
    - SchedulerService: manages job registration and execution
    - Jobs are stored in the ScheduledJob model for persistence
    - Manual trigger API for development and testing
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from flask import Flask

from backoffice.models import db
from backoffice.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("asset_cleanup")
        def process_asset_cleanup(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Lightweight scheduler service.

    Manages job registration, persistence, and execution.
    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop: threading.Event | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context."""
        # Importing registers the jobs.
        from backoffice.services import scheduled_jobs  # noqa: F401

        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))
        if app.config.get("SCHEDULER_AUTOSTART"):
            cls.start(float(app.config.get("SCHEDULER_INTERVAL_SECONDS", 30)))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create missing ScheduledJob rows for registered jobs."""
        created = []
        for name, fn in _job_registry.items():
            if not ScheduledJob.query.filter_by(job_name=name).first():
                job = ScheduledJob(
                    job_name=name,
                    description=(fn.__doc__ or f"Scheduled job: {name}").strip()[:500],
                    schedule_type="interval",
                    schedule_config=_get_default_schedule(name),
                    status="active",
                    is_enabled=True,
                )
                db.session.add(job)
                created.append(job)
        if created:
            db.session.commit()
            logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        duration_ms = int((time.monotonic() - start) * 1000)

        try:
            with cls._app.app_context():
                cls.ensure_jobs_registered()
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name)

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def run_enabled_jobs(cls) -> list[dict]:
        """Run every registered job whose record is not disabled."""
        results = []
        for name in list(_job_registry):
            with cls._app.app_context():
                record = ScheduledJob.query.filter_by(job_name=name).first()
                enabled = record.is_enabled if record else True
            if enabled:
                results.append(cls.run_job(name))
        return results

    @classmethod
    def start(cls, interval_seconds: float) -> None:
        """Run enabled jobs every *interval_seconds* on a daemon thread."""
        if cls._thread and cls._thread.is_alive():
            return
        cls._stop = threading.Event()

        def _loop():
            while not cls._stop.wait(interval_seconds):
                cls.run_enabled_jobs()

        cls._thread = threading.Thread(target=_loop, name="backoffice-scheduler", daemon=True)
        cls._thread.start()
        logger.info("Scheduler thread started (every %ss)", interval_seconds)

    @classmethod
    def stop(cls) -> None:
        if cls._stop:
            cls._stop.set()
        cls._thread = None

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        cls.ensure_jobs_registered()
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()


def _get_default_schedule(job_name: str) -> dict:
    """Return default schedule config for known job types."""
    defaults = {
        "asset_cleanup": {"seconds": 30, "description": "Every 30 seconds"},
    }
    return defaults.get(job_name, {"seconds": 3600, "description": "Hourly"})
