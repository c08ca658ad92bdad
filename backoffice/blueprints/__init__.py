"""
Back-Office Approval Platform
Blueprint registry and shared error handling.

Services raise the exceptions in ``backoffice.core.exceptions``; the
handlers below turn them into the standard error body once for the whole
API.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from backoffice.core.exceptions import (
    AssetError,
    ConflictError,
    NotFoundError,
    PartialBulkFailure,
    ValidationError,
)
from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Map service exceptions to HTTP responses."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @app.errorhandler(AssetError)
    def _handle_asset(error: AssetError):
        logger.warning("Asset pipeline failure (%s): %s", error.asset_class, error)
        return api_error(E.ASSET_PIPELINE, str(error), details={"asset_class": error.asset_class})

    @app.errorhandler(PartialBulkFailure)
    def _handle_partial(error: PartialBulkFailure):
        return api_error(
            E.BULK_PARTIAL, str(error),
            details={"succeeded": error.succeeded, "failed": error.failed},
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")


def json_body() -> dict:
    """Request JSON as a dict ({} for missing/invalid bodies)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
