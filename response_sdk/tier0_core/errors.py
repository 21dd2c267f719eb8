"""
response_sdk.tier0_core.errors
───────────────────────────────
Standard error taxonomy for the response layer, status-bearing errors for
handlers, and optional Sentry/OTel error capture. Raising a
ResponseSDKError here automatically reports it if an error backend is
configured.

Minimal stack: Sentry OSS + OTel error signals
Select via:    RESPONSE_ERROR_BACKEND=sentry|otel|none
"""
from __future__ import annotations

from typing import Any

from response_sdk.tier0_core.http import HTTP, status_text
from response_sdk.tier0_core.status import (
    STATUS_FAILURE,
    Status,
    StatusDetails,
    StatusReason,
)


# ── Base error ────────────────────────────────────────────────────────────────

class ResponseSDKError(Exception):
    """
    Base class for all response_sdk errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to end users
    - detail: internal context, never shown to users
    - status_code: HTTP status code for API responses
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class RenderError(ResponseSDKError):
    """The render engine could not encode a payload."""
    status_code = 500
    code = "render_error"

    def __init__(
        self,
        user_message: str = "Render failed.",
        engine: str | None = None,
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.engine = engine
        super().__init__(None, user_message, detail, engine=engine, **metadata)


class ConfigurationError(ResponseSDKError):
    """Misconfiguration detected at startup or first use."""
    status_code = 500
    code = "configuration_error"


class SetupError(ConfigurationError):
    """
    A deployment precondition is violated (e.g. the raw sink does not track
    writes). Fatal: never converted into an HTTP response.
    """
    code = "setup_precondition"


# ── Context errors ────────────────────────────────────────────────────────────
# Returned (not raised) by RequestContext.err(); no capture.

class ContextError(Exception):
    pass


class ContextCanceled(ContextError):
    def __init__(self) -> None:
        super().__init__("context canceled")


class DeadlineExceeded(ContextError):
    def __init__(self) -> None:
        super().__init__("context deadline exceeded")


# ── Status-bearing errors ─────────────────────────────────────────────────────

class StatusError(ResponseSDKError):
    """
    An error that carries its own API Status. The Status translator uses
    ``status()`` instead of wrapping the error as an opaque failure.

    Usage::

        raise new_not_found("user", "u_123")
    """

    def __init__(self, status: Status) -> None:
        self._status = status
        self.status_code = status.code or HTTP.INTERNAL_SERVER_ERROR
        super().__init__(
            (status.reason or StatusReason.UNKNOWN).lower(),
            status.message or status_text(self.status_code),
        )

    def status(self) -> Status:
        return self._status


def _failure(
    code: int,
    reason: str,
    message: str,
    details: StatusDetails | None = None,
) -> StatusError:
    return StatusError(Status(
        status=STATUS_FAILURE,
        code=code,
        reason=reason,
        message=message,
        details=details,
    ))


def new_bad_request(message: str) -> StatusError:
    return _failure(HTTP.BAD_REQUEST, StatusReason.BAD_REQUEST, message)


def new_unauthorized(message: str = "") -> StatusError:
    return _failure(
        HTTP.UNAUTHORIZED,
        StatusReason.UNAUTHORIZED,
        message or "not authorized",
    )


def new_forbidden(kind: str, name: str, message: str = "") -> StatusError:
    text = f"{kind} {name!r} is forbidden"
    if message:
        text = f"{text}: {message}"
    return _failure(
        HTTP.FORBIDDEN,
        StatusReason.FORBIDDEN,
        text,
        StatusDetails(kind=kind, name=name),
    )


def new_not_found(kind: str, name: str) -> StatusError:
    return _failure(
        HTTP.NOT_FOUND,
        StatusReason.NOT_FOUND,
        f"{kind} {name!r} not found",
        StatusDetails(kind=kind, name=name),
    )


def new_conflict(kind: str, name: str, message: str) -> StatusError:
    return _failure(
        HTTP.CONFLICT,
        StatusReason.CONFLICT,
        f"Operation cannot be fulfilled on {kind} {name!r}: {message}",
        StatusDetails(kind=kind, name=name),
    )


def new_too_many_requests(message: str, retry_after_seconds: int) -> StatusError:
    """429 with a retry hint; ``retry_after_seconds`` <= 0 omits the hint."""
    details = None
    if retry_after_seconds > 0:
        details = StatusDetails(retry_after_seconds=retry_after_seconds)
    return _failure(
        HTTP.TOO_MANY_REQUESTS,
        StatusReason.TOO_MANY_REQUESTS,
        message or "Too many requests, please try again later.",
        details,
    )


def new_service_unavailable(message: str, retry_after_seconds: int = 0) -> StatusError:
    details = None
    if retry_after_seconds > 0:
        details = StatusDetails(retry_after_seconds=retry_after_seconds)
    return _failure(
        HTTP.SERVICE_UNAVAILABLE,
        StatusReason.SERVICE_UNAVAILABLE,
        message,
        details,
    )


def new_internal_error(err: BaseException) -> StatusError:
    return _failure(
        HTTP.INTERNAL_SERVER_ERROR,
        StatusReason.INTERNAL_ERROR,
        f"Internal error occurred: {err}",
    )


# ── Error capture backend ─────────────────────────────────────────────────────

def _backend() -> str:
    from response_sdk.tier0_core.config import get_config
    return get_config().error_backend


def _capture(error: ResponseSDKError) -> None:
    """Send error to configured backend. Called automatically by ResponseSDKError.__init__."""
    backend = _backend()
    if backend == "none":
        return
    if backend == "sentry":
        _capture_sentry(error, error.status_code >= 500, {"code": error.code, **error.metadata})
    elif backend == "otel":
        _capture_otel(error)


def capture_exception(error: BaseException) -> None:
    """Report an arbitrary exception (e.g. a translation anomaly) to the backend."""
    backend = _backend()
    if backend == "sentry":
        _capture_sentry(error, True, {})
    elif backend == "otel":
        _capture_otel(error)


def _capture_sentry(error: BaseException, as_exception: bool, extras: dict) -> None:
    try:
        import sentry_sdk
    except ImportError:
        return
    if as_exception:
        sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_message(str(error), level="warning", extras=extras)


def _capture_otel(error: BaseException) -> None:
    try:
        from opentelemetry import trace
    except ImportError:
        return
    span = trace.get_current_span()
    span.record_exception(error)
    span.set_status(trace.StatusCode.ERROR, str(error))


__all__ = [
    "ResponseSDKError", "RenderError", "ConfigurationError", "SetupError",
    "ContextError", "ContextCanceled", "DeadlineExceeded",
    "StatusError", "new_bad_request", "new_unauthorized", "new_forbidden",
    "new_not_found", "new_conflict", "new_too_many_requests",
    "new_service_unavailable", "new_internal_error", "capture_exception",
]
