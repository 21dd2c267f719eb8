"""
response_sdk.tier0_core.http
─────────────────────────────
HTTP primitives: standard status codes and their reason phrases. Every
module shares these constants so codes are consistent across the layer.
"""
from __future__ import annotations

from werkzeug.http import HTTP_STATUS_CODES


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """Standard HTTP status codes."""

    # 2xx
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CONFLICT = 409
    GONE = 410
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504


def status_text(code: int) -> str:
    """Reason phrase for ``code``; empty string when the code is unknown."""
    return HTTP_STATUS_CODES.get(code, "")


def status_line(code: int) -> str:
    """WSGI status line, e.g. ``"404 Not Found"``."""
    text = status_text(code)
    return f"{code} {text}" if text else f"{code} UNKNOWN"


__all__ = ["HTTP", "status_text", "status_line"]
