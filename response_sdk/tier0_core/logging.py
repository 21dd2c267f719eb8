"""
response_sdk.tier0_core.logging
────────────────────────────────
Structured logs for the response layer. Every record carries the request_id
and trace_id bound by set_context(); header-like keys are redacted.

Events emitted by this package:
  request_completed                 info     one per request (duration_ms, status)
  handler.unhandled                 exception handler raised outside StatusError
  render.failed                     error    payload could not be encoded (engine, reason)
  status.anomaly                    error    error had to be repaired into a Status
  response.superfluous_write_header warning  status written after commit

Minimal stack: structlog (stdout JSON or console)
Configure via: RESPONSE_LOG_LEVEL, RESPONSE_LOG_FORMAT=json|console
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


# ── Configuration ─────────────────────────────────────────────────────────────

def _configure_structlog() -> None:
    from response_sdk.tier0_core.config import get_config

    cfg = get_config()
    log_level = cfg.log_level.upper()
    log_format = cfg.log_format.lower()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _redact_processor,
    ]

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))


# ── Redaction processor ───────────────────────────────────────────────────────

_REDACT_KEYS = frozenset({
    "password", "passwd", "secret", "token", "api_key", "apikey",
    "authorization", "cookie", "set_cookie", "credential", "access_token",
    "refresh_token", "client_secret", "session",
})

_REDACTED = "[REDACTED]"
_HANDLER_NAME = "response_sdk"


def _redact_processor(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """Strip sensitive fields from log records before output."""
    for key in list(event_dict.keys()):
        if key.lower() in _REDACT_KEYS:
            event_dict[key] = _REDACTED
    return event_dict


# ── Public API ────────────────────────────────────────────────────────────────

_configured = False


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structured logger. ``name`` defaults to RESPONSE_LOGGER_NAME.

    Usage:
        log = get_logger()
        log.error("render.failed", engine="json", reason="NaN")
    """
    global _configured
    if not _configured:
        _configure_structlog()
        _configured = True
    if name is None:
        from response_sdk.tier0_core.config import get_config
        name = get_config().logger_name
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current thread/async context.
    All subsequent log calls in this context will include these fields.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context-bound log fields. Call at end of request."""
    structlog.contextvars.clear_contextvars()


__all__ = ["get_logger", "bind_context", "clear_context"]
