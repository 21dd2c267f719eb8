"""
response_sdk.tier1_runtime.translate
──────────────────────────────────────
Status translator: turns any error value into a well-formed API Status.

  None                      → Success / 200
  error with status()       → that Status, normalized and stamped
  anything else             → Failure / 500 / Unknown, message = str(err)

to_api_status never raises and performs no I/O besides reporting anomalies
through ERROR_HANDLERS (log, counter, error backend).
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from response_sdk.tier0_core.errors import capture_exception
from response_sdk.tier0_core.http import HTTP
from response_sdk.tier0_core.logging import get_logger
from response_sdk.tier0_core.metrics import counter
from response_sdk.tier0_core.status import (
    STATUS_API_VERSION,
    STATUS_FAILURE,
    STATUS_KIND,
    STATUS_SUCCESS,
    Status,
    StatusProvider,
    StatusReason,
)

ErrorHandler = Callable[[BaseException], None]


class TranslationAnomaly(Exception):
    """An error reached the translator in a shape it had to repair."""


# ── Anomaly reporting ──────────────────────────────────────────────────────

_anomalies_total = counter(
    "response_status_anomalies_total",
    "Errors that could not be translated to an API Status as-is",
    ["kind"],
)


def _log_anomaly(err: BaseException) -> None:
    cause = err.__cause__
    get_logger("response_sdk.translate").error(
        "status.anomaly",
        reason=str(err),
        error_type=type(cause).__name__ if cause is not None else None,
    )


def _count_anomaly(err: BaseException) -> None:
    cause = err.__cause__
    _anomalies_total(kind=type(cause).__name__ if cause is not None else "unknown").inc()


ERROR_HANDLERS: list[ErrorHandler] = [_log_anomaly, _count_anomaly, capture_exception]


def handle_error(err: BaseException) -> None:
    """Pass ``err`` to every registered handler; a failing handler is skipped."""
    for handler in list(ERROR_HANDLERS):
        try:
            handler(err)
        except Exception:  # noqa: BLE001
            continue


def _anomaly(message: str, cause: Any) -> None:
    anomaly = TranslationAnomaly(message)
    if isinstance(cause, BaseException):
        anomaly.__cause__ = cause
    handle_error(anomaly)


# ── Translation ────────────────────────────────────────────────────────────

def _describe(err: Any) -> str:
    try:
        return str(err)
    except Exception:  # noqa: BLE001
        return f"<unprintable {type(err).__name__}>"


def _provided_status(err: Any) -> Status | None:
    if not isinstance(err, StatusProvider):
        return None
    try:
        status = err.status()
    except Exception as exc:  # noqa: BLE001
        _anomaly(f"status() of {type(err).__name__} raised: {_describe(exc)}", err)
        return None
    if isinstance(status, Status):
        return status
    if isinstance(status, Mapping):
        try:
            return Status.model_validate(status)
        except PydanticValidationError:
            return None
    return None


def to_api_status(err: Any) -> Status:
    """Convert an error (or None) to an API Status. Never raises."""
    if err is None:
        return Status(
            kind=STATUS_KIND,
            api_version=STATUS_API_VERSION,
            status=STATUS_SUCCESS,
            code=HTTP.OK,
        )

    status = _provided_status(err)
    if status is not None:
        flag = status.status or STATUS_FAILURE
        code = status.code
        if flag == STATUS_SUCCESS:
            code = code or HTTP.OK
        elif flag == STATUS_FAILURE:
            code = code or HTTP.INTERNAL_SERVER_ERROR
        else:
            _anomaly(f"received an error with wrong status field {flag!r}: {_describe(err)}", err)
            code = code or HTTP.INTERNAL_SERVER_ERROR
        return status.model_copy(update={
            "status": flag,
            "code": code,
            "kind": STATUS_KIND,
            "api_version": STATUS_API_VERSION,
        })

    # Errors that were not converted to a Status by the caller usually mean
    # a handler raised something outside the StatusError family.
    message = _describe(err)
    _anomaly(f"received an error that is not a Status: {type(err).__name__}: {message}", err)
    return Status(
        kind=STATUS_KIND,
        api_version=STATUS_API_VERSION,
        status=STATUS_FAILURE,
        code=HTTP.INTERNAL_SERVER_ERROR,
        reason=StatusReason.UNKNOWN,
        message=message,
    )


__all__ = ["to_api_status", "handle_error", "ERROR_HANDLERS", "TranslationAnomaly"]
