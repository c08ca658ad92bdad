"""Unit tests for backoffice.services.asset_reconciliation.

Test strategy
-------------
The Drive gateway is a MagicMock; the clock is a fixed lambda so final
names are deterministic.  No Flask app state is needed except for
``folders_from_config``.
"""

from unittest.mock import MagicMock

import pytest

from backoffice.core.exceptions import RenameError, UploadError
from backoffice.services.asset_reconciliation import (
    ASSET_CLASSES,
    AssetChange,
    AssetReconciler,
    UploadedFile,
    folders_from_config,
)

NOW_MS = 1700000000000


def _gateway(upload_ids=("new-id",)):
    gateway = MagicMock()
    gateway.upload.side_effect = list(upload_ids)
    gateway.rename.return_value = True
    gateway.set_public_access.return_value = True
    gateway.delete.return_value = True
    return gateway


def _reconciler(gateway, folders=None):
    return AssetReconciler(gateway, folders or {"finance_proof": "folder-fin"}, clock=lambda: NOW_MS)


def _upload(content=b"%PDF-1.4", mime="application/pdf"):
    return UploadedFile(content=content, filename="proof.pdf", mime_type=mime)


# ── Naming ──────────────────────────────────────────────────────────────


class TestNaming:
    def test_temp_name_shape(self):
        name = _reconciler(_gateway()).temp_name()
        prefix, ts, suffix = name.split("_")
        assert prefix == "temp"
        assert ts == str(NOW_MS)
        assert len(suffix) == 8

    def test_public_classes_slugify_owner(self):
        assert ASSET_CLASSES["finance_proof"].final_name("Venue Rental May", NOW_MS) == \
            f"finance-proof-venue-rental-may-{NOW_MS}"
        assert ASSET_CLASSES["event_thumbnail"].final_name("Open  Day", NOW_MS) == \
            f"event-thumbnail-open-day-{NOW_MS}"

    def test_private_classes_keep_owner_name(self):
        assert ASSET_CLASSES["structure_decree"].final_name("Board 2024", NOW_MS) == \
            f"decree_Board 2024_{NOW_MS}"
        assert ASSET_CLASSES["structure_image"].final_name("Board 2024", NOW_MS) == \
            f"structure_image_Board 2024_{NOW_MS}"

    def test_visibility(self):
        assert ASSET_CLASSES["finance_proof"].public
        assert ASSET_CLASSES["event_thumbnail"].public
        assert not ASSET_CLASSES["structure_decree"].public
        assert not ASSET_CLASSES["structure_image"].public


# ── Single change ────────────────────────────────────────────────────────


class TestReconcile:
    def test_no_change_keeps_reference(self):
        gateway = _gateway()
        outcome = _reconciler(gateway).reconcile(
            AssetChange("proof", "finance_proof", current_ref="old-id"), "Venue",
        )
        assert outcome.ref == "old-id"
        assert not outcome.changed
        gateway.upload.assert_not_called()
        gateway.delete.assert_not_called()

    def test_upload_rename_publish(self):
        gateway = _gateway()
        outcome = _reconciler(gateway).reconcile(
            AssetChange("proof", "finance_proof", current_ref="old-id", upload=_upload()), "Venue",
        )

        content, temp_name, folder, mime = gateway.upload.call_args.args
        assert content == b"%PDF-1.4"
        assert temp_name.startswith(f"temp_{NOW_MS}_")
        assert folder == "folder-fin"
        assert mime == "application/pdf"
        gateway.rename.assert_called_once_with("new-id", f"finance-proof-venue-{NOW_MS}")
        gateway.set_public_access.assert_called_once_with("new-id")

        assert outcome.ref == "new-id"
        assert outcome.changed
        assert outcome.new_object_id == "new-id"
        assert outcome.obsolete_object_id == "old-id"
        gateway.delete.assert_not_called()

    def test_obsolete_id_extracted_from_url(self):
        gateway = _gateway()
        outcome = _reconciler(gateway).reconcile(
            AssetChange(
                "proof", "finance_proof",
                current_ref="https://drive.google.com/file/d/abc_123/view",
                upload=_upload(),
            ),
            "Venue",
        )
        assert outcome.obsolete_object_id == "abc_123"

    def test_external_reference_is_never_obsolete(self):
        gateway = _gateway()
        outcome = _reconciler(gateway).reconcile(
            AssetChange("proof", "finance_proof", current_ref="https://example.org/x.pdf",
                        upload=_upload()),
            "Venue",
        )
        assert outcome.obsolete_object_id is None

    def test_private_class_is_not_published(self):
        gateway = _gateway()
        _reconciler(gateway).reconcile(
            AssetChange("decree", "structure_decree", upload=_upload()), "Board",
        )
        gateway.set_public_access.assert_not_called()

    def test_upload_failure_creates_nothing(self):
        gateway = _gateway(upload_ids=[None])
        with pytest.raises(UploadError):
            _reconciler(gateway).reconcile(
                AssetChange("proof", "finance_proof", current_ref="old-id", upload=_upload()), "Venue",
            )
        gateway.rename.assert_not_called()
        gateway.delete.assert_not_called()

    def test_rename_failure_deletes_upload(self):
        gateway = _gateway()
        gateway.rename.return_value = False
        with pytest.raises(RenameError) as exc:
            _reconciler(gateway).reconcile(
                AssetChange("proof", "finance_proof", current_ref="old-id", upload=_upload()), "Venue",
            )
        assert exc.value.object_id == "new-id"
        gateway.delete.assert_called_once_with("new-id")

    def test_publish_failure_keeps_new_object(self):
        gateway = _gateway()
        gateway.set_public_access.return_value = False
        outcome = _reconciler(gateway).reconcile(
            AssetChange("proof", "finance_proof", upload=_upload()), "Venue",
        )
        assert outcome.ref == "new-id"
        assert outcome.warnings == ["public_access_failed"]
        gateway.delete.assert_not_called()

    def test_removal_defers_delete_of_old_object(self):
        gateway = _gateway()
        reconciler = _reconciler(gateway)
        outcome = reconciler.reconcile(
            AssetChange("proof", "finance_proof", current_ref="old-id", remove=True), "Venue",
        )
        gateway.delete.assert_not_called()
        assert outcome.ref is None
        assert outcome.changed
        assert outcome.removed_object_id == "old-id"
        assert outcome.new_object_id is None

        reconciler.delete_removed([outcome])
        gateway.delete.assert_called_once_with("old-id")

    def test_removal_delete_failure_is_logged_only(self):
        gateway = _gateway()
        gateway.delete.side_effect = RuntimeError("boom")
        reconciler = _reconciler(gateway)
        outcome = reconciler.reconcile(
            AssetChange("proof", "finance_proof", current_ref="old-id", remove=True), "Venue",
        )
        reconciler.delete_removed([outcome])
        assert outcome.ref is None

    def test_discard_leaves_removed_object(self):
        gateway = _gateway()
        reconciler = _reconciler(gateway)
        outcome = reconciler.reconcile(
            AssetChange("proof", "finance_proof", current_ref="old-id", remove=True), "Venue",
        )
        reconciler.discard([outcome])
        gateway.delete.assert_not_called()

    def test_unknown_asset_class(self):
        with pytest.raises(ValueError):
            _reconciler(_gateway()).reconcile(AssetChange("x", "logo", upload=_upload()), "Venue")


# ── Multiple changes ─────────────────────────────────────────────────────


class TestReconcileAll:
    def test_later_failure_discards_earlier_uploads(self):
        gateway = _gateway(upload_ids=["decree-id", None])
        reconciler = _reconciler(gateway)
        changes = [
            AssetChange("decree", "structure_decree", upload=_upload()),
            AssetChange("structure", "structure_image", upload=_upload(mime="image/png")),
        ]
        with pytest.raises(UploadError):
            reconciler.reconcile_all(changes, "Board")
        gateway.delete.assert_called_once_with("decree-id")

    def test_changes_run_in_order(self):
        gateway = _gateway(upload_ids=["decree-id", "image-id"])
        outcomes = _reconciler(gateway).reconcile_all(
            [
                AssetChange("decree", "structure_decree", upload=_upload()),
                AssetChange("structure", "structure_image", upload=_upload(mime="image/png")),
            ],
            "Board",
        )
        assert [o.ref for o in outcomes] == ["decree-id", "image-id"]

    def test_discard_only_touches_new_objects(self):
        gateway = _gateway()
        reconciler = _reconciler(gateway)
        outcomes = reconciler.reconcile_all(
            [AssetChange("proof", "finance_proof", current_ref="old-id", upload=_upload())], "Venue",
        )
        reconciler.discard(outcomes)
        gateway.delete.assert_called_once_with("new-id")


def test_folders_from_config():
    folders = folders_from_config({
        "DRIVE_FOLDER_FINANCE": "f1",
        "DRIVE_FOLDER_EVENT": "f2",
        "DRIVE_FOLDER_STRUCTURE": "f3",
        "DRIVE_FOLDER_ORGANIZATIONAL_STRUCTURE": "f4",
    })
    assert folders == {
        "finance_proof": "f1",
        "event_thumbnail": "f2",
        "structure_decree": "f3",
        "structure_image": "f4",
    }
