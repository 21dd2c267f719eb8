"""
response_sdk.tier0_core.status
────────────────────────────────
The versioned API Status object returned to clients when an operation
fails (or explicitly succeeds with no other payload). Modelled on the
Kubernetes ``meta/v1`` Status schema.

Wire format::

    {"kind": "Status", "apiVersion": "v1", "status": "Failure",
     "code": 429, "reason": "TooManyRequests", "message": "...",
     "details": {"retryAfterSeconds": 30}}
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

STATUS_KIND = "Status"
STATUS_API_VERSION = "v1"

STATUS_SUCCESS = "Success"
STATUS_FAILURE = "Failure"


class StatusReason:
    """Machine-readable reasons carried in ``Status.reason``."""

    UNKNOWN = "Unknown"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    CONFLICT = "Conflict"
    GONE = "Gone"
    INVALID = "Invalid"
    SERVER_TIMEOUT = "ServerTimeout"
    TIMEOUT = "Timeout"
    TOO_MANY_REQUESTS = "TooManyRequests"
    BAD_REQUEST = "BadRequest"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    NOT_ACCEPTABLE = "NotAcceptable"
    REQUEST_ENTITY_TOO_LARGE = "RequestEntityTooLarge"
    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    INTERNAL_ERROR = "InternalError"
    EXPIRED = "Expired"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class StatusCause(_Model):
    """A single cause contributing to a failure, usually a field error."""
    reason: str | None = None
    message: str | None = None
    field: str | None = None


class StatusDetails(_Model):
    """Extended data associated with the reason of a Status."""
    name: str | None = None
    group: str | None = None
    kind: str | None = None
    uid: str | None = None
    causes: tuple[StatusCause, ...] | None = None
    retry_after_seconds: int | None = Field(default=None, alias="retryAfterSeconds")


class Status(_Model):
    """
    Immutable API status. Build a fresh one per error; use
    ``model_copy(update=...)`` to derive a normalized copy.
    """
    kind: str | None = None
    api_version: str | None = Field(default=None, alias="apiVersion")
    status: str | None = None
    code: int = 0
    reason: str | None = None
    message: str | None = None
    details: StatusDetails | None = None

    @property
    def retry_after_seconds(self) -> int:
        if self.details is None or self.details.retry_after_seconds is None:
            return 0
        return self.details.retry_after_seconds

    def as_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@runtime_checkable
class StatusProvider(Protocol):
    """Capability: an error that can report its own API Status."""

    def status(self) -> Status: ...


__all__ = [
    "STATUS_KIND", "STATUS_API_VERSION", "STATUS_SUCCESS", "STATUS_FAILURE",
    "StatusReason", "StatusCause", "StatusDetails", "Status", "StatusProvider",
]
