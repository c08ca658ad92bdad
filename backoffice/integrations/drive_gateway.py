"""
Google Drive Integration Gateway.

All outbound HTTP calls to the Drive v3 REST API go through this class.
Direct `requests` calls in services or blueprints are FORBIDDEN.

The asset pipeline treats the four primitives as atomic:

    upload(content, name, folder_id, mime_type) → file id | None
    rename(file_id, name)                       → bool
    set_public_access(file_id)                  → bool
    delete(file_id)                             → bool   (404 counts as done)

Primitives never raise on HTTP/network failure; they log and return a
falsy value so the caller decides whether the failure is fatal.

  - Bearer token from a static string or a token-provider callable
  - Retry: transient failures (network, 429, 5xx) up to 2 more attempts,
    backoff 1 s → 4 s
  - Timeout: 30 s per call

Testability: pass a mock `session` to DriveGateway() in tests instead of
letting it create a real requests.Session internally, or swap the whole
gateway in ``app.extensions["drive_gateway"]``.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}

# ── Defaults ───────────────────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30
DEFAULT_API_BASE = "https://www.googleapis.com/drive/v3"
DEFAULT_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"


class GatewayResult:
    """Structured return value from DriveGateway requests.

    Attributes:
        ok:             True if the call succeeded (HTTP 2xx + no exception).
        status_code:    HTTP status code (None if network-level failure).
        data:           Parsed JSON response body, else None.
        error:          Human-readable error message or None.
        duration_ms:    Round-trip latency of the last attempt.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | None,
        error: str | None,
        duration_ms: int,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms

    def __repr__(self):
        return f"<GatewayResult ok={self.ok} status={self.status_code}>"


class DriveGateway:
    """Google Drive v3 gateway.

    Usage:
        gateway = build_drive_gateway(app.config)
        file_id = gateway.upload(data, "temp_1700000000000_ab12cd34", folder_id, "image/png")
    """

    def __init__(
        self,
        token: str | Callable[[], str] | None = None,
        *,
        api_base: str = DEFAULT_API_BASE,
        upload_base: str = DEFAULT_UPLOAD_BASE,
        session: requests.Session | None = None,
        max_retries: int = _RETRY_MAX,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self._token = token
        self.api_base = api_base.rstrip("/")
        self.upload_base = upload_base.rstrip("/")
        self._session: requests.Session | None = session
        self.max_retries = max_retries
        self.timeout = timeout

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _access_token(self) -> str:
        token = self._token() if callable(self._token) else self._token
        if not token:
            raise ValueError("Drive access token is not configured")
        return token

    # ── Core request dispatcher ───────────────────────────────────────────────

    def request(
        self,
        method: str,
        url: str,
        *,
        json_body: dict | None = None,
        data: bytes | None = None,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> GatewayResult:
        """Execute an authenticated Drive request with retries.

        Returns:
            GatewayResult — always returns (never raises). Callers check .ok.
        """
        try:
            token = self._access_token()
        except Exception as exc:
            logger.error("Drive token unavailable: %s", exc)
            return GatewayResult(False, None, None, f"Token unavailable: {exc}", 0)

        request_headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        request_headers.update(headers or {})

        kwargs: dict[str, Any] = {"headers": request_headers, "timeout": self.timeout}
        if json_body is not None:
            kwargs["json"] = json_body
        if data is not None:
            kwargs["data"] = data
        if params:
            kwargs["params"] = params

        last_error = "Unknown error"
        last_status: int | None = None
        duration_ms = 0

        for attempt in range(self.max_retries + 1):
            try:
                t0 = time.perf_counter()
                resp = self.session.request(method, url, **kwargs)
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                if resp.ok:
                    try:
                        body = resp.json() if resp.content else {}
                    except ValueError:
                        body = {}
                    return GatewayResult(True, resp.status_code, body, None, duration_ms)

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code not in _RETRYABLE_STATUS:
                    logger.warning("Drive %s %s failed status=%d", method, url, resp.status_code)
                    break
                logger.warning(
                    "Drive request failed attempt=%d/%d status=%d url=%s",
                    attempt + 1, self.max_retries + 1, resp.status_code, url,
                )

            except requests.Timeout:
                last_error = f"Request timed out after {self.timeout}s"
                logger.warning(
                    "Drive request timed out attempt=%d/%d url=%s",
                    attempt + 1, self.max_retries + 1, url,
                )

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                logger.warning(
                    "Drive network error attempt=%d/%d url=%s error=%s",
                    attempt + 1, self.max_retries + 1, url, last_error,
                )

            if attempt < self.max_retries:
                sleep_s = _RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)]
                time.sleep(sleep_s)

        return GatewayResult(False, last_status, None, last_error, duration_ms)

    # ── Drive primitives ─────────────────────────────────────────────────────

    def upload(
        self,
        content: bytes,
        name: str,
        folder_id: str | None = None,
        mime_type: str = "application/octet-stream",
    ) -> str | None:
        """Multipart upload. Returns the new file id, or None on failure."""
        metadata: dict[str, Any] = {"name": name}
        if folder_id:
            metadata["parents"] = [folder_id]

        boundary = f"backoffice-{uuid.uuid4().hex}"
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {mime_type}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--\r\n".encode(),
        ])

        result = self.request(
            "POST", f"{self.upload_base}/files",
            data=body,
            params={"uploadType": "multipart", "fields": "id,name"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        if not result.ok:
            logger.error("Drive upload of %s failed: %s", name, result.error)
            return None
        file_id = (result.data or {}).get("id")
        if not file_id:
            logger.error("Drive upload of %s returned no file id", name)
            return None
        logger.info("Drive upload %s → %s", name, file_id)
        return file_id

    def rename(self, file_id: str, name: str) -> bool:
        result = self.request(
            "PATCH", f"{self.api_base}/files/{file_id}",
            json_body={"name": name},
            params={"fields": "id,name"},
        )
        if not result.ok:
            logger.error("Drive rename %s → %s failed: %s", file_id, name, result.error)
        return result.ok

    def set_public_access(self, file_id: str) -> bool:
        """Grant anyone-with-the-link read access."""
        result = self.request(
            "POST", f"{self.api_base}/files/{file_id}/permissions",
            json_body={"role": "reader", "type": "anyone"},
        )
        if not result.ok:
            logger.error("Drive set-public %s failed: %s", file_id, result.error)
        return result.ok

    def delete(self, file_id: str) -> bool:
        """Delete a file. A file that is already gone counts as deleted."""
        result = self.request("DELETE", f"{self.api_base}/files/{file_id}")
        if result.ok or result.status_code == 404:
            logger.info("Drive delete %s (status=%s)", file_id, result.status_code)
            return True
        logger.error("Drive delete %s failed: %s", file_id, result.error)
        return False


def build_drive_gateway(config) -> DriveGateway:
    """Create the application's gateway from a Flask config mapping."""
    token = config.get("DRIVE_TOKEN_PROVIDER") or config.get("DRIVE_ACCESS_TOKEN")
    return DriveGateway(
        token,
        api_base=config.get("DRIVE_API_BASE") or DEFAULT_API_BASE,
        upload_base=config.get("DRIVE_UPLOAD_BASE") or DEFAULT_UPLOAD_BASE,
        max_retries=int(config.get("DRIVE_MAX_RETRIES", _RETRY_MAX)),
    )


def get_drive_gateway() -> DriveGateway:
    """Gateway registered on the current app (``app.extensions["drive_gateway"]``)."""
    from flask import current_app
    return current_app.extensions["drive_gateway"]
