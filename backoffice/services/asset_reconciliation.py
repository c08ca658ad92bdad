"""
Asset Reconciliation Protocol.

Turns "a record's Drive reference plus an optional new file / removal flag"
into a stable reference, in strict order:

    1. nothing to do          → keep the current reference
    2. upload temp_<ms>_<8>   → UploadError on failure, nothing created
    3. rename to final name   → on failure delete the upload, RenameError
    4. set public (public classes only), failure logged, id still adopted
    5. old object             → returned as ``obsolete_object_id``; the record
                                service queues its deletion in the same
                                transaction that stores the new reference
    6. removal, no upload     → reference cleared, old object returned as
                                ``removed_object_id``; the record service
                                deletes it once the record is saved

``reconcile_all`` finishes each change before starting the next and, when a
later change fails, deletes the objects already created for earlier ones.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field

from flask import current_app

from backoffice.core.exceptions import AssetError, RenameError, UploadError
from backoffice.utils.drive_files import file_id_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetClass:
    """Naming/visibility rules for one kind of Drive-hosted attachment."""
    key: str
    name_pattern: str
    public: bool
    slug_name: bool = True

    def final_name(self, owner_name: str, timestamp_ms: int) -> str:
        name = (owner_name or "").strip()
        if self.slug_name:
            name = re.sub(r"\s+", "-", name).lower()
        return self.name_pattern.format(name=name, ts=timestamp_ms)


ASSET_CLASSES = {
    "finance_proof": AssetClass("finance_proof", "finance-proof-{name}-{ts}", public=True),
    "event_thumbnail": AssetClass("event_thumbnail", "event-thumbnail-{name}-{ts}", public=True),
    "structure_decree": AssetClass(
        "structure_decree", "decree_{name}_{ts}", public=False, slug_name=False,
    ),
    "structure_image": AssetClass(
        "structure_image", "structure_image_{name}_{ts}", public=False, slug_name=False,
    ),
}


@dataclass
class UploadedFile:
    content: bytes
    filename: str = ""
    mime_type: str = "application/octet-stream"


@dataclass
class AssetChange:
    """Requested change to one reference field."""
    field: str
    asset_class: str
    current_ref: str | None = None
    upload: UploadedFile | None = None
    remove: bool = False


@dataclass
class AssetOutcome:
    field: str
    asset_class: str
    ref: str | None
    changed: bool = False
    new_object_id: str | None = None
    obsolete_object_id: str | None = None
    removed_object_id: str | None = None
    warnings: list[str] = field(default_factory=list)


def _now_ms() -> int:
    return int(time.time() * 1000)


class AssetReconciler:
    """Runs the protocol against a Drive gateway.

    Args:
        gateway: object with upload/rename/set_public_access/delete.
        folders: asset class key → Drive folder id.
        clock:   callable returning a millisecond timestamp.
    """

    def __init__(self, gateway, folders: dict | None = None, clock=_now_ms):
        self.gateway = gateway
        self.folders = folders or {}
        self.clock = clock

    def temp_name(self) -> str:
        return f"temp_{self.clock()}_{uuid.uuid4().hex[:8]}"

    def _delete_quietly(self, object_id: str, context: str) -> bool:
        try:
            ok = self.gateway.delete(object_id)
        except Exception:
            logger.exception("Drive delete of %s raised (%s)", object_id, context)
            return False
        if not ok:
            logger.warning("Drive delete of %s failed (%s)", object_id, context)
        return bool(ok)

    def reconcile(self, change: AssetChange, owner_name: str) -> AssetOutcome:
        asset_class = ASSET_CLASSES.get(change.asset_class)
        if asset_class is None:
            raise ValueError(f"Unknown asset class: {change.asset_class}")

        old_object_id = file_id_from(change.current_ref)

        if change.upload is None:
            if not change.remove:
                return AssetOutcome(change.field, asset_class.key, change.current_ref)
            return AssetOutcome(
                change.field, asset_class.key, None,
                changed=True, removed_object_id=old_object_id,
            )

        new_id = self.gateway.upload(
            change.upload.content,
            self.temp_name(),
            self.folders.get(asset_class.key),
            change.upload.mime_type,
        )
        if not new_id:
            raise UploadError(asset_class.key, f"Failed to upload {asset_class.key}")

        final_name = asset_class.final_name(owner_name, self.clock())
        if not self.gateway.rename(new_id, final_name):
            self._delete_quietly(new_id, f"{asset_class.key} rename failed")
            raise RenameError(asset_class.key, f"Failed to rename {asset_class.key}", object_id=new_id)

        outcome = AssetOutcome(
            change.field, asset_class.key, new_id,
            changed=True,
            new_object_id=new_id,
            obsolete_object_id=old_object_id if old_object_id != new_id else None,
        )
        if asset_class.public and not self.gateway.set_public_access(new_id):
            logger.warning("Could not make %s %s public; keeping it", asset_class.key, new_id)
            outcome.warnings.append("public_access_failed")

        logger.info("%s reconciled: %s → %s", asset_class.key, old_object_id, new_id)
        return outcome

    def reconcile_all(self, changes: list[AssetChange], owner_name: str) -> list[AssetOutcome]:
        """Reconcile every change in order; all-or-nothing for new uploads."""
        outcomes = []
        for change in changes:
            try:
                outcomes.append(self.reconcile(change, owner_name))
            except AssetError:
                self.discard(outcomes)
                raise
        return outcomes

    def discard(self, outcomes: list[AssetOutcome]) -> None:
        """Best-effort delete of objects created for *outcomes* (save failed)."""
        for outcome in outcomes:
            if outcome.new_object_id:
                self._delete_quietly(outcome.new_object_id, "save rolled back")

    def delete_removed(self, outcomes: list[AssetOutcome]) -> None:
        """Delete objects whose reference was cleared. Call after commit."""
        for outcome in outcomes:
            if outcome.removed_object_id:
                self._delete_quietly(outcome.removed_object_id, f"{outcome.asset_class} removed")


def folders_from_config(config) -> dict:
    return {
        "finance_proof": config.get("DRIVE_FOLDER_FINANCE"),
        "event_thumbnail": config.get("DRIVE_FOLDER_EVENT"),
        "structure_decree": config.get("DRIVE_FOLDER_STRUCTURE"),
        "structure_image": config.get("DRIVE_FOLDER_ORGANIZATIONAL_STRUCTURE"),
    }


def build_reconciler() -> AssetReconciler:
    """Reconciler wired to the current app's gateway and folder config."""
    return AssetReconciler(
        current_app.extensions["drive_gateway"],
        folders_from_config(current_app.config),
    )
