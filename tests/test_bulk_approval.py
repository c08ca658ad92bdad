"""Tests for backoffice.services.bulk_approval and POST /api/v1/approvals/bulk."""

import pytest

from backoffice.core.exceptions import PartialBulkFailure, ValidationError
from backoffice.models import db
from backoffice.services import approval_service, approval_store, bulk_approval

USER_ID = "user-1"
ADMIN = {"X-User-Id": "admin-1"}


@pytest.fixture()
def approvals(finance, letter, event):
    return [
        approval_service.create_approval("FINANCE", finance.id, USER_ID).id,
        approval_service.create_approval("LETTER", letter.id, USER_ID).id,
        approval_service.create_approval("EVENT", event.id, USER_ID).id,
    ]


class TestApplyBulk:
    @pytest.mark.parametrize("action, status, record_status", [
        ("approve", "APPROVED", "PUBLISH"),
        ("reject", "REJECTED", "DRAFT"),
        ("revision", "CANCELLED", "DRAFT"),
        ("return", "PENDING", "PENDING"),
    ])
    def test_every_item_updated_and_synced(self, approvals, finance, letter, event,
                                           action, status, record_status):
        result = bulk_approval.apply_bulk(approvals, action, actor_id="admin-1")

        assert result.ok
        assert result.succeeded == approvals
        db.session.expire_all()
        assert {approval_store.find_by_id(a).status for a in approvals} == {status}
        assert {finance.status, letter.status, event.status} == {record_status}

    def test_default_notes(self, approvals):
        bulk_approval.apply_bulk(approvals[:1], "approve")
        assert approval_store.find_by_id(approvals[0]).note == "Approved by admin"

        bulk_approval.apply_bulk(approvals[1:2], "revision")
        assert approval_store.find_by_id(approvals[1]).note == "Please revise and resubmit"

    def test_caller_note_used(self, approvals):
        bulk_approval.apply_bulk(approvals[:1], "reject", note="Receipt unreadable")
        assert approval_store.find_by_id(approvals[0]).note == "Receipt unreadable"

    def test_return_ignores_caller_note(self, approvals):
        bulk_approval.apply_bulk(approvals[:1], "return", note="custom")
        assert approval_store.find_by_id(approvals[0]).note == "Approval returned to pending status"

    def test_failures_do_not_stop_the_batch(self, approvals):
        ids = [approvals[0], "missing-id", approvals[1]]
        result = bulk_approval.apply_bulk(ids, "approve")

        assert result.succeeded == [approvals[0], approvals[1]]
        assert result.failed == [{"id": "missing-id", "error": "Approval id=missing-id not found",
                                  "code": "not_found"}]
        assert approval_store.find_by_id(approvals[1]).status == "APPROVED"

    def test_unknown_action(self, approvals):
        with pytest.raises(ValidationError):
            bulk_approval.apply_bulk(approvals, "publish")

    def test_empty_ids(self):
        with pytest.raises(ValidationError):
            bulk_approval.apply_bulk([], "approve")

    def test_or_raise_reports_partial_failure(self, approvals):
        with pytest.raises(PartialBulkFailure) as exc:
            bulk_approval.apply_bulk_or_raise([approvals[0], "missing-id"], "approve")
        assert exc.value.succeeded == [approvals[0]]
        assert exc.value.failed[0]["id"] == "missing-id"
        assert approval_store.find_by_id(approvals[0]).status == "APPROVED"


class TestBulkEndpoint:
    def test_all_succeed(self, client, approvals):
        res = client.post("/api/v1/approvals/bulk", headers=ADMIN,
                          json={"approval_ids": approvals, "action": "approve"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["requested"] == 3
        assert body["status"] == "APPROVED"
        assert body["failed"] == []

    def test_partial_failure_is_207(self, client, approvals):
        res = client.post("/api/v1/approvals/bulk", headers=ADMIN,
                          json={"approval_ids": [approvals[0], "missing-id"], "action": "reject"})
        assert res.status_code == 207
        body = res.get_json()
        assert body["code"] == "ERR_BULK_PARTIAL"
        assert body["details"]["succeeded"] == [approvals[0]]
        assert body["details"]["failed"][0]["id"] == "missing-id"

    def test_missing_ids(self, client):
        res = client.post("/api/v1/approvals/bulk", headers=ADMIN, json={"action": "approve"})
        assert res.status_code == 400

    def test_unknown_action_is_422(self, client, approvals):
        res = client.post("/api/v1/approvals/bulk", headers=ADMIN,
                          json={"approval_ids": approvals, "action": "publish"})
        assert res.status_code == 422

    def test_requires_user(self, client, approvals):
        res = client.post("/api/v1/approvals/bulk", json={"approval_ids": approvals, "action": "approve"})
        assert res.status_code == 401
