"""
Tests: record endpoints (/api/v1/<kind>) with approval and Drive side effects.

Setup strategy:
    The `drive` fixture swaps a MagicMock gateway into app.extensions so
    every Drive call is observable.  Records that need a pre-existing state
    (an approved finance with an old proof) are arranged through the ORM and
    approval_service, then driven through the HTTP surface.
"""

import io
import re
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from backoffice.models import db
from backoffice.models.activity import ActivityLog
from backoffice.models.approval import Approval
from backoffice.models.asset_cleanup import AssetCleanupTask
from backoffice.models.structure import Structure
from backoffice.services import approval_service, asset_cleanup

USER_ID = "user-1"
AUTH = {"X-User-Id": USER_ID}

FINANCE_PAYLOAD = {
    "name": "Venue rental",
    "amount": 100,
    "date": "2024-05-01",
    "type": "EXPENSE",
}


def _file(content=b"%PDF-1.4 receipt", name="receipt.pdf"):
    return (io.BytesIO(content), name)


@pytest.fixture()
def approved_finance(finance):
    """Finance with a Drive proof whose approval was APPROVED."""
    finance.proof = "old123"
    db.session.commit()
    approval = approval_service.create_approval("FINANCE", finance.id, USER_ID)
    approval_service.update_approval(approval.id, "APPROVED", "ok", actor_id="reviewer-1")
    return finance


# ═════════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════════


class TestCreateRecord:
    def test_create_draft(self, client):
        res = client.post("/api/v1/finances", headers=AUTH, json=FINANCE_PAYLOAD)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "DRAFT"
        assert body["amount"] == 100.0
        assert body["date"] == "2024-05-01"
        assert body["user_id"] == USER_ID
        assert body["current_approval_id"] is None
        assert Approval.query.count() == 0

    def test_create_pending_opens_exactly_one_approval(self, client):
        res = client.post("/api/v1/finances", headers=AUTH,
                          json={**FINANCE_PAYLOAD, "status": "PENDING"})
        assert res.status_code == 201
        body = res.get_json()

        approvals = Approval.query.all()
        assert len(approvals) == 1
        assert approvals[0].entity_id == body["id"]
        assert approvals[0].status == "PENDING"
        assert approvals[0].note == "Finance transaction submitted for approval"
        assert body["current_approval_id"] == approvals[0].id

    def test_create_upsert_kind_pending(self, client):
        res = client.post("/api/v1/letters", headers=AUTH, json={
            "number": "002/OUT/2024", "regarding": "Sponsorship", "date": "2024-06-01",
            "type": "OUTGOING", "status": "PENDING",
        })
        assert res.status_code == 201
        assert res.get_json()["created_by_id"] == USER_ID
        assert Approval.query.filter_by(entity_type="LETTER").count() == 1

    def test_missing_required_fields(self, client):
        res = client.post("/api/v1/finances", headers=AUTH, json={"name": "Only a name"})
        assert res.status_code == 422
        details = res.get_json()["details"]
        assert set(details) == {"amount", "date", "type"}

    def test_invalid_enum_and_number(self, client):
        res = client.post("/api/v1/finances", headers=AUTH,
                          json={**FINANCE_PAYLOAD, "type": "REFUND", "amount": "lots"})
        assert res.status_code == 422
        details = res.get_json()["details"]
        assert "type" in details
        assert details["amount"] == "must be a number"

    def test_invalid_status(self, client):
        res = client.post("/api/v1/finances", headers=AUTH,
                          json={**FINANCE_PAYLOAD, "status": "LIVE"})
        assert res.status_code == 422

    def test_client_cannot_set_asset_reference(self, client, drive):
        res = client.post("/api/v1/finances", headers=AUTH,
                          json={**FINANCE_PAYLOAD, "proof": "someone-elses-file"})
        assert res.status_code == 201
        assert res.get_json()["proof"] is None

    def test_requires_user_identity(self, client):
        res = client.post("/api/v1/finances", json=FINANCE_PAYLOAD)
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_create_with_thumbnail(self, client, drive):
        res = client.post(
            "/api/v1/events", headers=AUTH,
            data={
                "name": "Open Day",
                "schedules": '[{"start": "09:00", "end": "12:00"}]',
                "thumbnail": _file(b"\x89PNG", "thumb.png"),
            },
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["thumbnail"] == "drive-id-1"
        assert body["schedules"] == [{"start": "09:00", "end": "12:00"}]

        final_name = drive.rename.call_args.args[1]
        assert re.fullmatch(r"event-thumbnail-open-day-\d{13}", final_name)
        drive.set_public_access.assert_called_once_with("drive-id-1")

    def test_event_create_opens_pending_approval(self, client):
        res = client.post("/api/v1/events", headers=AUTH, json={"name": "Open Day"})
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "PENDING"

        approval = Approval.query.one()
        assert approval.entity_type == "EVENT"
        assert approval.entity_id == body["id"]
        assert approval.status == "PENDING"
        assert approval.user_id == USER_ID
        assert approval.note == "Event created and pending approval"
        assert body["current_approval_id"] == approval.id

    def test_event_create_with_pending_status_is_single_approval(self, client):
        res = client.post("/api/v1/events", headers=AUTH, json={"name": "Open Day", "status": "PENDING"})
        assert res.status_code == 201
        assert Approval.query.count() == 1

    def test_create_logs_activity(self, client):
        res = client.post("/api/v1/finances", headers=AUTH, json=FINANCE_PAYLOAD)
        log = ActivityLog.query.filter_by(entity_type="Finance", entity_id=res.get_json()["id"]).one()
        assert log.activity_type == "CREATE"
        assert log.details["newData"]["name"] == "Venue rental"

    def test_work_program_remaining_funds(self, client):
        res = client.post("/api/v1/work-programs", headers=AUTH, json={
            "name": "Mentoring", "department": "Education", "funds": 500, "used_funds": 120,
        })
        assert res.status_code == 201
        assert res.get_json()["remaining_funds"] == 380.0


# ═════════════════════════════════════════════════════════════════════════
# UPDATE + RESUBMISSION
# ═════════════════════════════════════════════════════════════════════════


class TestUpdateRecord:
    def test_replace_proof_scenario(self, client, drive, approved_finance):
        """New proof on an approved finance: upload, rename, publish, resubmit, defer delete."""
        res = client.put(
            f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
            data={"name": "Venue rental", "proof": _file()},
            content_type="multipart/form-data",
        )
        assert res.status_code == 200
        body = res.get_json()

        content, temp_name, _folder, mime = drive.upload.call_args.args
        assert content == b"%PDF-1.4 receipt"
        assert re.fullmatch(r"temp_\d{13}_[0-9a-f]{8}", temp_name)
        assert mime == "application/pdf"
        assert re.fullmatch(r"finance-proof-venue-rental-\d{13}", drive.rename.call_args.args[1])
        drive.set_public_access.assert_called_once_with("drive-id-1")

        assert body["proof"] == "drive-id-1"
        assert body["status"] == "PENDING"

        approval = Approval.query.one()
        assert approval.status == "PENDING"
        assert approval.note == "Finance transaction updated and resubmitted for approval"

        # The old object is only queued; nothing was deleted inline.
        drive.delete.assert_not_called()
        task = AssetCleanupTask.query.one()
        assert task.object_id == "old123"
        assert task.reason == "replaced"

        asset_cleanup.process_due(drive, now=datetime.now(UTC) + timedelta(seconds=5))
        drive.delete.assert_called_once_with("old123")

    def test_non_substantive_edit_keeps_approval(self, client, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"amount": "100", "date": "01.05.2024"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "PUBLISH"
        assert Approval.query.one().status == "APPROVED"

    def test_substantive_edit_resubmits(self, client, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"amount": 175})
        assert res.status_code == 200
        assert res.get_json()["status"] == "PENDING"
        assert Approval.query.one().status == "PENDING"

    def test_explicit_pending_appends_after_decision(self, client, approved_finance):
        # Non-substantive edit plus an explicit review request: a second approval.
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"status": "PENDING"})
        assert res.status_code == 200
        assert Approval.query.count() == 2

    def test_explicit_pending_not_duplicated(self, client, finance):
        client.put(f"/api/v1/finances/{finance.id}", headers=AUTH, json={"status": "PENDING"})
        client.put(f"/api/v1/finances/{finance.id}", headers=AUTH, json={"status": "PENDING"})
        assert Approval.query.count() == 1

    def test_resubmit_plus_explicit_pending_is_single_approval(self, client, approved_finance):
        client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                   json={"amount": 175, "status": "PENDING"})
        assert Approval.query.count() == 1

    def test_upload_failure_leaves_reference(self, client, drive, approved_finance):
        drive.upload.side_effect = lambda *args, **kwargs: None
        res = client.put(
            f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
            data={"proof": _file()}, content_type="multipart/form-data",
        )
        assert res.status_code == 502
        assert res.get_json()["details"]["asset_class"] == "finance_proof"
        assert approved_finance.proof == "old123"
        assert approved_finance.status == "PUBLISH"
        assert AssetCleanupTask.query.count() == 0
        drive.rename.assert_not_called()

    def test_rename_failure_deletes_upload(self, client, drive, approved_finance):
        drive.rename.return_value = False
        res = client.put(
            f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
            data={"proof": _file()}, content_type="multipart/form-data",
        )
        assert res.status_code == 502
        drive.delete.assert_called_once_with("drive-id-1")
        assert approved_finance.proof == "old123"

    def test_save_failure_discards_new_upload(self, client, drive, approved_finance):
        with patch(
            "backoffice.services.entity_service.asset_cleanup.schedule_deletion",
            side_effect=RuntimeError("queue unavailable"),
        ):
            res = client.put(
                f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                data={"proof": _file()}, content_type="multipart/form-data",
            )
        assert res.status_code == 500
        drive.delete.assert_called_once_with("drive-id-1")
        assert approved_finance.proof == "old123"
        assert Approval.query.one().status == "APPROVED"

    def test_remove_proof_deletes_after_save(self, client, drive, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"remove_assets": ["proof"]})
        assert res.status_code == 200
        assert res.get_json()["proof"] is None
        drive.delete.assert_called_once_with("old123")

    def test_remove_assets_accepts_single_field_name(self, client, drive, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"remove_assets": "proof"})
        assert res.status_code == 200
        assert res.get_json()["proof"] is None
        drive.delete.assert_called_once_with("old123")

    def test_remove_assets_rejects_non_list(self, client, drive, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         json={"remove_assets": {"proof": True}})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"remove_assets": "invalid"}
        assert approved_finance.proof == "old123"
        drive.delete.assert_not_called()

    def test_remove_keeps_object_when_save_fails(self, client, drive, approved_finance):
        with patch(
            "backoffice.services.entity_service.commit_or_raise",
            side_effect=RuntimeError("db down"),
        ):
            res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                             json={"remove_assets": ["proof"]})
        assert res.status_code == 500
        assert approved_finance.proof == "old123"
        drive.delete.assert_not_called()

    def test_remove_via_multipart_flag(self, client, drive, approved_finance):
        res = client.put(f"/api/v1/finances/{approved_finance.id}", headers=AUTH,
                         data={"remove_proof": "true"}, content_type="multipart/form-data")
        assert res.status_code == 200
        assert res.get_json()["proof"] is None

    def test_unknown_file_field(self, client, finance):
        res = client.put(f"/api/v1/finances/{finance.id}", headers=AUTH,
                         json={"remove_assets": ["thumbnail"]})
        assert res.status_code == 422

    def test_update_logs_old_and_new_data(self, client, finance):
        client.put(f"/api/v1/finances/{finance.id}", headers=AUTH, json={"amount": 42})
        log = ActivityLog.query.filter_by(activity_type="UPDATE", entity_type="Finance").one()
        assert log.details["oldData"]["amount"] == 100.0
        assert log.details["newData"]["amount"] == 42.0

    def test_remaining_funds_recomputed(self, client, work_program):
        res = client.put(f"/api/v1/work-programs/{work_program.id}", headers=AUTH,
                         json={"used_funds": 400})
        assert res.get_json()["remaining_funds"] == 600.0

    def test_update_missing_record(self, client):
        res = client.put("/api/v1/finances/missing", headers=AUTH, json={"amount": 1})
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# STRUCTURES (two private assets, not reviewable)
# ═════════════════════════════════════════════════════════════════════════


class TestStructure:
    def test_create_with_two_private_assets(self, client, drive):
        res = client.post(
            "/api/v1/structures", headers=AUTH,
            data={
                "name": "Board 2024",
                "decree": _file(b"decree", "decree.pdf"),
                "structure": _file(b"\x89PNG", "chart.png"),
            },
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        body = res.get_json()
        assert {body["decree"], body["structure"]} == {"drive-id-1", "drive-id-2"}
        drive.set_public_access.assert_not_called()
        names = sorted(c.args[1] for c in drive.rename.call_args_list)
        assert re.fullmatch(r"decree_Board 2024_\d{13}", names[0])
        assert re.fullmatch(r"structure_image_Board 2024_\d{13}", names[1])

    def test_second_upload_failure_discards_first(self, client, drive):
        ids = iter(["drive-id-1", None])
        drive.upload.side_effect = lambda *args, **kwargs: next(ids)
        res = client.post(
            "/api/v1/structures", headers=AUTH,
            data={
                "name": "Board 2024",
                "decree": _file(b"decree", "decree.pdf"),
                "structure": _file(b"\x89PNG", "chart.png"),
            },
            content_type="multipart/form-data",
        )
        assert res.status_code == 502
        drive.delete.assert_called_once_with("drive-id-1")
        assert Structure.query.count() == 0

    def test_removal_kept_when_other_upload_fails(self, client, drive):
        structure = Structure(name="Board 2024", decree="olddecree")
        db.session.add(structure)
        db.session.commit()
        drive.upload.side_effect = lambda *args, **kwargs: None

        res = client.put(
            f"/api/v1/structures/{structure.id}", headers=AUTH,
            data={"remove_decree": "true", "structure": _file(b"\x89PNG", "chart.png")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 502
        assert structure.decree == "olddecree"
        drive.delete.assert_not_called()

    def test_structures_have_no_approvals(self, client):
        res = client.post("/api/v1/structures", headers=AUTH, json={"name": "Board"})
        sid = res.get_json()["id"]
        assert client.get(f"/api/v1/structures/{sid}/approvals").status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# READ + DELETE
# ═════════════════════════════════════════════════════════════════════════


class TestReadAndDelete:
    def test_list_with_filter(self, client, finance):
        client.post("/api/v1/finances", headers=AUTH, json={**FINANCE_PAYLOAD, "type": "INCOME"})
        res = client.get("/api/v1/finances?type=INCOME")
        assert res.status_code == 200
        body = res.get_json()
        assert body["pagination"]["total"] == 1
        assert body["items"][0]["type"] == "INCOME"

    @pytest.mark.parametrize("kind", [
        "work-programs", "events", "finances", "documents", "letters", "structures",
    ])
    def test_every_kind_is_routed(self, client, kind):
        res = client.get(f"/api/v1/{kind}")
        assert res.status_code == 200
        assert res.get_json()["pagination"]["total"] == 0

    def test_unknown_kind(self, client):
        assert client.get("/api/v1/invoices").status_code == 404

    def test_record_approvals_flags_current(self, client, finance):
        first = approval_service.create_approval("FINANCE", finance.id, USER_ID)
        second = approval_service.create_approval("FINANCE", finance.id, "user-2")

        res = client.get(f"/api/v1/finances/{finance.id}/approvals")
        body = res.get_json()
        assert body["total"] == 2
        assert {i["id"]: i["is_current"] for i in body["items"]} == {second.id: True, first.id: False}

    def test_delete_keeps_approvals_by_default(self, client, finance):
        approval_service.create_approval("FINANCE", finance.id, USER_ID)
        res = client.delete(f"/api/v1/finances/{finance.id}", headers=AUTH)
        assert res.status_code == 200
        assert Approval.query.count() == 1

    def test_delete_cascades_when_configured(self, app, client, approved_finance):
        app.config["ENTITY_DELETE_CASCADE_APPROVALS"] = True
        app.config["ENTITY_DELETE_CASCADE_ASSETS"] = True
        try:
            res = client.delete(f"/api/v1/finances/{approved_finance.id}", headers=AUTH)
        finally:
            app.config["ENTITY_DELETE_CASCADE_APPROVALS"] = False
            app.config["ENTITY_DELETE_CASCADE_ASSETS"] = False

        assert res.status_code == 200
        assert Approval.query.count() == 0
        task = AssetCleanupTask.query.one()
        assert task.object_id == "old123"
        assert task.reason == "entity_deleted"

    def test_delete_missing(self, client):
        assert client.delete("/api/v1/finances/missing", headers=AUTH).status_code == 404
