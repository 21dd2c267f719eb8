"""
response_sdk
────────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from response_sdk.tier0_core.logging import get_logger
from response_sdk.tier0_core.errors import (
    ResponseSDKError,
    RenderError,
    ConfigurationError,
    SetupError,
    ContextCanceled,
    DeadlineExceeded,
    StatusError,
    new_bad_request,
    new_unauthorized,
    new_forbidden,
    new_not_found,
    new_conflict,
    new_too_many_requests,
    new_service_unavailable,
    new_internal_error,
)
from response_sdk.tier0_core.config import get_config, ResponseConfig
from response_sdk.tier0_core.http import HTTP, status_text
from response_sdk.tier0_core.status import (
    Status,
    StatusCause,
    StatusDetails,
    StatusProvider,
    StatusReason,
    STATUS_SUCCESS,
    STATUS_FAILURE,
)

from response_sdk.tier1_runtime.context import get_context, set_context, RequestContext
from response_sdk.tier1_runtime.serialize import serialize, deserialize
from response_sdk.tier1_runtime.sink import ResponseSink, TrackedResponseSink, TrackingSink
from response_sdk.tier1_runtime.render import Renderer, RenderOptions, HTMLOptions, Engine
from response_sdk.tier1_runtime.router import Router
from response_sdk.tier1_runtime.request import Request
from response_sdk.tier1_runtime.translate import to_api_status
from response_sdk.tier1_runtime.response import ResponseWriter
from response_sdk.tier1_runtime.middleware import ResponseWSGIApp

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "ResponseSDKError", "RenderError", "ConfigurationError", "SetupError",
    "ContextCanceled", "DeadlineExceeded", "StatusError",
    "new_bad_request", "new_unauthorized", "new_forbidden", "new_not_found",
    "new_conflict", "new_too_many_requests", "new_service_unavailable",
    "new_internal_error",
    # config
    "get_config", "ResponseConfig",
    # http
    "HTTP", "status_text",
    # status
    "Status", "StatusCause", "StatusDetails", "StatusProvider", "StatusReason",
    "STATUS_SUCCESS", "STATUS_FAILURE",
    # context
    "get_context", "set_context", "RequestContext",
    # serialize
    "serialize", "deserialize",
    # sinks
    "ResponseSink", "TrackedResponseSink", "TrackingSink",
    # render
    "Renderer", "RenderOptions", "HTMLOptions", "Engine",
    # routing / request
    "Router", "Request",
    # status translation
    "to_api_status",
    # response wrapper
    "ResponseWriter",
    # wsgi
    "ResponseWSGIApp",
]
