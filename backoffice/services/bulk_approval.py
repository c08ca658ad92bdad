"""
Bulk Action Coordinator.

Applies one reviewer action to many approvals.  Each id goes through
``approval_service.update_approval`` on its own, so every item commits or
rolls back independently; a failure never stops the remaining items.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from backoffice.core.exceptions import NotFoundError, PartialBulkFailure, ValidationError
from backoffice.services import approval_service

logger = logging.getLogger(__name__)

# action → (approval status, default note, caller note honoured)
BULK_ACTIONS = {
    "approve": ("APPROVED", "Approved by admin", True),
    "reject": ("REJECTED", "Rejected by admin", True),
    "revision": ("CANCELLED", "Please revise and resubmit", True),
    "return": ("PENDING", "Approval returned to pending status", False),
}


@dataclass
class BulkResult:
    action: str
    status: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "status": self.status,
            "requested": len(self.succeeded) + len(self.failed),
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


def apply_bulk(
    approval_ids: list[str],
    action: str,
    note: str | None = None,
    actor_id: str | None = None,
) -> BulkResult:
    """Run *action* over every id, collecting per-item outcomes.

    Raises:
        ValidationError: unknown action or empty id list.
    """
    if action not in BULK_ACTIONS:
        raise ValidationError(
            f"Invalid action '{action}'",
            details={"action": f"Must be one of: {', '.join(sorted(BULK_ACTIONS))}"},
        )
    if not approval_ids:
        raise ValidationError("approval_ids must be a non-empty list", details={"approval_ids": "required"})

    status, default_note, note_allowed = BULK_ACTIONS[action]
    final_note = (note or default_note) if note_allowed else default_note

    result = BulkResult(action=action, status=status)
    for approval_id in approval_ids:
        try:
            approval_service.update_approval(approval_id, status, final_note, actor_id=actor_id)
            result.succeeded.append(approval_id)
        except NotFoundError as exc:
            result.failed.append({"id": approval_id, "error": str(exc), "code": "not_found"})
        except ValidationError as exc:
            result.failed.append({"id": approval_id, "error": str(exc), "code": "invalid"})
        except Exception as exc:
            logger.exception("Bulk %s failed for approval %s", action, approval_id)
            result.failed.append({"id": approval_id, "error": str(exc), "code": "error"})

    logger.info(
        "Bulk %s: %d succeeded, %d failed", action, len(result.succeeded), len(result.failed),
    )
    return result


def apply_bulk_or_raise(
    approval_ids: list[str],
    action: str,
    note: str | None = None,
    actor_id: str | None = None,
) -> BulkResult:
    """Same as ``apply_bulk`` but raises ``PartialBulkFailure`` if any item failed."""
    result = apply_bulk(approval_ids, action, note=note, actor_id=actor_id)
    if not result.ok:
        raise PartialBulkFailure(
            f"Failed to {action} {len(result.failed)} of "
            f"{len(result.succeeded) + len(result.failed)} approvals",
            succeeded=result.succeeded,
            failed=result.failed,
        )
    return result
