"""
response_sdk.tier1_runtime.context
────────────────────────────────────
Request context: correlation IDs, cancellation, deadline and request-scoped
values. The ResponseWriter forwards Deadline/Done/Err/Value straight to the
RequestContext of its inbound request.

Uses Python contextvars for async-safe, framework-agnostic storage of the
current context. Automatically propagated to logging via structlog
contextvars.
"""
from __future__ import annotations

import threading
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from response_sdk.tier0_core.errors import ContextCanceled, ContextError, DeadlineExceeded


class _Cancellation:
    """Shared cancellation state; child contexts created by with_value share it."""

    def __init__(self) -> None:
        self.event = threading.Event()
        self.err: ContextError | None = None
        self.timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def cancel(self, err: ContextError) -> None:
        with self._lock:
            if self.err is not None:
                return
            self.err = err
            if self.timer is not None:
                self.timer.cancel()
            self.event.set()


@dataclass
class RequestContext:
    """All per-request metadata available throughout the request lifecycle."""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: str | None = None
    deadline_at: datetime | None = None
    values: dict[Any, Any] = field(default_factory=dict)
    _cancellation: _Cancellation = field(default_factory=_Cancellation, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float, **kwargs: Any) -> "RequestContext":
        """Create a context cancelled with DeadlineExceeded after ``seconds``."""
        ctx = cls(
            deadline_at=datetime.now(timezone.utc) + timedelta(seconds=seconds),
            **kwargs,
        )
        timer = threading.Timer(seconds, ctx._cancellation.cancel, args=(DeadlineExceeded(),))
        timer.daemon = True
        ctx._cancellation.timer = timer
        timer.start()
        return ctx

    def cancel(self) -> None:
        self._cancellation.cancel(ContextCanceled())

    def deadline(self) -> tuple[datetime | None, bool]:
        return self.deadline_at, self.deadline_at is not None

    def done(self) -> threading.Event:
        return self._cancellation.event

    def err(self) -> ContextError | None:
        return self._cancellation.err

    def value(self, key: Any) -> Any:
        return self.values.get(key)

    def with_value(self, key: Any, value: Any) -> "RequestContext":
        """Child context with one more value; cancellation is shared."""
        return RequestContext(
            request_id=self.request_id,
            trace_id=self.trace_id,
            deadline_at=self.deadline_at,
            values={**self.values, key: value},
            _cancellation=self._cancellation,
        )


# ── ContextVar storage ────────────────────────────────────────────────────────

_ctx: ContextVar[RequestContext | None] = ContextVar(
    "response_request_context",
    default=None,
)


# ── Public API ────────────────────────────────────────────────────────────────

def get_context() -> RequestContext:
    """Return the current request context, creating a detached one if unset."""
    ctx = _ctx.get()
    if ctx is None:
        ctx = RequestContext()
        _ctx.set(ctx)
    return ctx


def set_context(ctx: RequestContext) -> None:
    """Set the request context for the current scope."""
    _ctx.set(ctx)
    # Sync with structlog contextvars so all log calls get these fields
    from response_sdk.tier0_core.logging import bind_context
    bind_context(request_id=ctx.request_id, trace_id=ctx.trace_id)


__all__ = ["RequestContext", "get_context", "set_context"]
