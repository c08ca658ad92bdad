"""
Back-office exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere:

    NotFoundError        404
    ConflictError        409
    ValidationError      422
    AssetError           502  (UploadError, RenameError)
    PartialBulkFailure   207-style aggregate body

Usage:
    from backoffice.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Approval", resource_id=approval_id)
    raise ValidationError("Invalid status", details={"status": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model name (e.g. "Approval", "Finance").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate an existing record.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field (or field group) that would be duplicated.
        value: The conflicting value.
        message: Optional override for the default "... already exists" text.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class AssetError(Exception):
    """Base for Drive pipeline failures. Maps to HTTP 502.

    Args:
        asset_class: Asset class being reconciled (e.g. "finance_proof").
        message: Human-readable explanation.
    """

    def __init__(self, asset_class: str, message: str) -> None:
        self.asset_class = asset_class
        super().__init__(message)


class UploadError(AssetError):
    """The new object could not be uploaded. Nothing was created."""


class RenameError(AssetError):
    """The uploaded object could not be renamed to its final name.

    ``object_id`` is the temporary upload, already handed to a
    compensating delete when this is raised.
    """

    def __init__(self, asset_class: str, message: str, object_id: str | None = None) -> None:
        self.object_id = object_id
        super().__init__(asset_class, message)


class PartialBulkFailure(Exception):
    """Raised when some items of a bulk operation failed.

    Successful items stay persisted; ``succeeded`` and ``failed`` carry the
    per-item outcome for the response body.
    """

    def __init__(self, message: str, succeeded: list, failed: list) -> None:
        self.succeeded = succeeded
        self.failed = failed
        super().__init__(message)
