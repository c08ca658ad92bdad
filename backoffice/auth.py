"""
Back-Office Approval Platform
Authentication & Authorization Middleware.

Provides:
    - API key authentication via X-API-Key header
    - Role-based access control (RBAC) decorator
    - Acting-user identity via X-User-Id header (required for mutations)
    - Content-Type enforcement for state-changing requests

Configuration (env vars / app config):
    API_KEYS          — comma-separated list of valid API keys
                        e.g. "key1:admin,key2:viewer,key3:editor"
                        Format: "<key>:<role>" where role is admin|editor|viewer
    API_AUTH_ENABLED  — set to "false" to disable API-key auth (dev/test)
"""

import functools
import logging
import os

from flask import current_app, g, request

from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "editor", "viewer"}

# Role hierarchy: admin > editor > viewer
ROLE_HIERARCHY = {
    "admin": {"admin", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}

USER_HEADER = "X-User-Id"


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS into {key: role} mapping.

    Keys without a role default to 'viewer'.
    """
    raw = current_app.config.get("API_KEYS") or os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, role = entry.rsplit(":", 1)
            role = role.strip().lower()
            if role not in ROLES:
                logger.warning("Unknown role '%s' for API key, defaulting to 'viewer'", role)
                role = "viewer"
            keys[key.strip()] = role
        else:
            keys[entry] = "viewer"
    return keys


def _is_auth_enabled() -> bool:
    value = str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return value.lower() not in ("false", "0", "no", "off")


def current_user_id() -> str | None:
    """Acting user for the current request (``X-User-Id``), or None.

    The header wins over ``g.user_id``: ``g`` lives on the app context, which
    can outlast a single request.
    """
    value = request.headers.get(USER_HEADER, "").strip()
    if value:
        return value
    return getattr(g, "user_id", None) or None


# ── Decorators ───────────────────────────────────────────────────────────────

def require_user(f):
    """
    Decorator: require an acting-user identity.

    Sets g.user_id from the X-User-Id header; 401 when it is missing.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user_id = current_user_id()
        if not user_id:
            return api_error(E.UNAUTHENTICATED, f"Missing user identity. Provide {USER_HEADER} header.")
        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated


def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_role("admin")
        def bulk_action(): ...

    Role hierarchy: admin > editor > viewer
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_role = getattr(g, "current_user_role", None)
            if not user_role:
                return api_error(E.UNAUTHENTICATED, "Authentication required")

            allowed = ROLE_HIERARCHY.get(user_role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    user_role, minimum_role, request.path,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── Content-Type enforcement ─────────────────────────────────────────────────

def _check_content_type():
    """
    State-changing requests with a body must be JSON or multipart (file
    uploads).  HTML forms posting urlencoded bodies are rejected.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if request.content_length and "application/json" not in ct and "multipart/form-data" not in ct:
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json or multipart/form-data",
                status=415,
            )
    return None


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Attaches a before_request hook for /api/v1/* routes
    - Skips the health check and CORS pre-flight requests
    """
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path == "/api/v1/health" or request.method == "OPTIONS":
            return None

        ct_error = _check_content_type()
        if ct_error:
            return ct_error

        g.user_id = request.headers.get(USER_HEADER, "").strip() or None

        if not _is_auth_enabled():
            g.current_user_role = "admin"
            g.api_key = "dev-mode"
            return None

        api_key = request.headers.get("X-API-Key", "").strip()
        if not api_key:
            return api_error(E.UNAUTHENTICATED, "Authentication required. Provide X-API-Key header.")

        api_keys = _parse_api_keys()
        if not api_keys:
            logger.error("API_KEYS is not configured but API_AUTH_ENABLED=true")
            return api_error(E.INTERNAL, "Server authentication not configured")

        role = api_keys.get(api_key)
        if role is None:
            logger.warning("Invalid API key attempt: %s...", api_key[:8])
            return api_error(E.UNAUTHENTICATED, "Invalid API key")

        g.current_user_role = role
        g.api_key = api_key
        return None

    with app.app_context():
        logger.info("Auth middleware installed (enabled=%s)", _is_auth_enabled())
