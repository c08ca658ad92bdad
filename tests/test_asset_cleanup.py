"""
Tests: deferred Drive-object cleanup queue and its scheduled job.

Covers:
    - schedule_deletion rides the caller's transaction
    - process_due: success, retry with backoff, give-up after max attempts
    - the asset_cleanup job through SchedulerService and the scheduler API
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from backoffice.models import db
from backoffice.models.asset_cleanup import AssetCleanupTask
from backoffice.services import asset_cleanup


def _gateway(ok=True):
    gateway = MagicMock()
    gateway.delete.return_value = ok
    return gateway


def _later(seconds):
    return datetime.now(UTC) + timedelta(seconds=seconds)


# ═════════════════════════════════════════════════════════════════════════
# QUEUEING
# ═════════════════════════════════════════════════════════════════════════


class TestScheduleDeletion:
    def test_queues_one_task_per_object(self):
        tasks = asset_cleanup.schedule_deletion(["a", "b", None, ""], "finance_proof")
        db.session.commit()

        assert len(tasks) == 2
        assert {t.object_id for t in AssetCleanupTask.query.all()} == {"a", "b"}
        assert all(t.status == "queued" for t in tasks)
        assert all(t.max_attempts == 3 for t in tasks)

    def test_rolled_back_with_the_caller(self):
        asset_cleanup.schedule_deletion(["a"], "finance_proof")
        db.session.rollback()
        assert AssetCleanupTask.query.count() == 0

    def test_unknown_reason(self):
        with pytest.raises(ValueError):
            asset_cleanup.schedule_deletion(["a"], "finance_proof", reason="cleanup")

    def test_not_due_before_delay(self):
        asset_cleanup.schedule_deletion(["a"], "finance_proof", delay_seconds=60)
        db.session.commit()

        assert asset_cleanup.due_tasks(datetime.now(UTC)) == []
        assert len(asset_cleanup.due_tasks(_later(61))) == 1


# ═════════════════════════════════════════════════════════════════════════
# PROCESSING
# ═════════════════════════════════════════════════════════════════════════


class TestProcessDue:
    def test_deletes_due_objects(self):
        asset_cleanup.schedule_deletion(["a", "b"], "finance_proof", delay_seconds=0)
        db.session.commit()
        gateway = _gateway()

        result = asset_cleanup.process_due(gateway, now=_later(1))

        assert result == {"processed": 2, "deleted": 2, "retrying": 0, "failed": 0}
        assert {c.args[0] for c in gateway.delete.call_args_list} == {"a", "b"}
        assert all(t.status == "done" for t in AssetCleanupTask.query.all())

    def test_failure_backs_off(self):
        asset_cleanup.schedule_deletion(["a"], "finance_proof", delay_seconds=0)
        db.session.commit()
        now = _later(1)

        result = asset_cleanup.process_due(_gateway(ok=False), now=now)
        assert result["retrying"] == 1

        task = AssetCleanupTask.query.one()
        assert task.status == "queued"
        assert task.attempts == 1
        assert task.last_error == "Drive delete returned failure"
        # Next attempt not before now + 30 s.
        assert asset_cleanup.due_tasks(now + timedelta(seconds=29)) == []
        assert len(asset_cleanup.due_tasks(now + timedelta(seconds=31))) == 1

    def test_gives_up_after_max_attempts(self):
        asset_cleanup.schedule_deletion(["a"], "finance_proof", delay_seconds=0)
        db.session.commit()
        gateway = _gateway()
        gateway.delete.side_effect = RuntimeError("network down")

        now = _later(1)
        for _ in range(3):
            asset_cleanup.process_due(gateway, now=now)
            now += timedelta(minutes=10)

        task = AssetCleanupTask.query.one()
        assert task.status == "failed"
        assert task.attempts == 3
        assert "network down" in task.last_error
        assert asset_cleanup.process_due(gateway, now=now)["processed"] == 0

    def test_nothing_due(self):
        assert asset_cleanup.process_due(_gateway())["processed"] == 0


# ═════════════════════════════════════════════════════════════════════════
# SCHEDULED JOB
# ═════════════════════════════════════════════════════════════════════════


class TestAssetCleanupJob:
    def test_job_is_registered(self):
        from backoffice.services.scheduler_service import get_registered_jobs
        assert "asset_cleanup" in get_registered_jobs()

    def test_run_job_uses_app_gateway(self, drive):
        from backoffice.services.scheduler_service import SchedulerService

        asset_cleanup.schedule_deletion(["old-proof"], "finance_proof", delay_seconds=0)
        db.session.commit()

        result = SchedulerService.run_job("asset_cleanup")

        assert result["status"] == "success"
        assert result["result"]["deleted"] == 1
        drive.delete.assert_called_once_with("old-proof")

    def test_scheduler_api_lists_and_runs(self, client, drive):
        res = client.get("/api/v1/scheduler/jobs")
        assert res.status_code == 200
        assert "asset_cleanup" in [j["job_name"] for j in res.get_json()["jobs"]]

        res = client.post("/api/v1/scheduler/jobs/asset_cleanup/run")
        assert res.status_code == 200
        assert res.get_json()["status"] == "success"

    def test_scheduler_api_unknown_job(self, client):
        assert client.post("/api/v1/scheduler/jobs/nope/run").status_code == 404

    def test_scheduler_api_toggle(self, client):
        res = client.post("/api/v1/scheduler/jobs/asset_cleanup/toggle", json={"enabled": False})
        assert res.status_code == 200
        assert res.get_json()["is_enabled"] is False

        res = client.post("/api/v1/scheduler/jobs/asset_cleanup/toggle", json={})
        assert res.status_code == 400
