"""
response_sdk.tier1_runtime.middleware
───────────────────────────────────────
WSGI application that wires one ResponseWriter per request: request
context, write tracking, routing, and the last line of error handling.

Usage (any WSGI server)::

    from response_sdk import ResponseWSGIApp, Router

    router = Router()

    @router.route("/healthz")
    def healthz(w):
        w.text(200, "ok")

    app = ResponseWSGIApp(router)
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Iterable

from werkzeug.exceptions import MethodNotAllowed, NotFound
from werkzeug.routing import RequestRedirect
from werkzeug.wrappers import Request as WerkzeugRequest

from response_sdk.tier0_core.config import ResponseConfig, get_config
from response_sdk.tier0_core.errors import RenderError, SetupError, StatusError
from response_sdk.tier0_core.http import HTTP
from response_sdk.tier0_core.logging import clear_context, get_logger
from response_sdk.tier0_core.metrics import histogram
from response_sdk.tier0_core.status import STATUS_FAILURE, Status, StatusReason
from response_sdk.tier1_runtime.context import RequestContext, set_context
from response_sdk.tier1_runtime.render import Renderer
from response_sdk.tier1_runtime.request import Request
from response_sdk.tier1_runtime.response import ResponseWriter
from response_sdk.tier1_runtime.router import Handler, Router
from response_sdk.tier1_runtime.sink import ResponseSink, TrackedResponseSink, TrackingSink

_request_duration = histogram(
    "response_request_duration_seconds",
    "Time spent handling a request",
    ["method", "status"],
)


def _route_status(code: int, reason: str, message: str) -> StatusError:
    return StatusError(Status(status=STATUS_FAILURE, code=code, reason=reason, message=message))


class ResponseWSGIApp:
    """
    WSGI entry point. ``track_writes=False`` leaves the raw sink bare, in
    which case ``written()``/``status()``/``bytes_written()`` raise SetupError.
    """

    def __init__(
        self,
        router: Router,
        renderer: Renderer | None = None,
        config: ResponseConfig | None = None,
        track_writes: bool = True,
        logger: Any = None,
    ) -> None:
        self.router = router
        self.config = config or get_config()
        self.renderer = renderer or Renderer.from_config(self.config)
        self.track_writes = track_writes
        self._log = logger if logger is not None else get_logger(self.config.logger_name)

    def route(self, rule: str, methods: list[str] | None = None) -> Callable[[Handler], Handler]:
        return self.router.route(rule, methods)

    def _new_context(self, environ: dict) -> RequestContext:
        request_id = (
            environ.get("HTTP_X_REQUEST_ID")
            or environ.get("HTTP_X_CORRELATION_ID")
            or str(uuid.uuid4())
        )
        trace_id = environ.get("HTTP_X_TRACE_ID") or request_id
        timeout = self.config.request_timeout_seconds
        if timeout:
            return RequestContext.with_timeout(timeout, request_id=request_id, trace_id=trace_id)
        return RequestContext(request_id=request_id, trace_id=trace_id)

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        ctx = self._new_context(environ)
        set_context(ctx)

        raw_sink = ResponseSink(start_response, self._log)
        sink = TrackedResponseSink(raw_sink) if self.track_writes else raw_sink
        request = Request(WerkzeugRequest(environ), ctx, self.config.max_form_memory_size)
        w = ResponseWriter(sink, request, self.renderer, self._log)

        start = time.perf_counter()
        try:
            self._dispatch(w, request)
        finally:
            ctx.cancel()
            duration = time.perf_counter() - start
            status = sink.status() if isinstance(sink, TrackingSink) else None
            self._log.info(
                "request_completed",
                request_id=ctx.request_id,
                duration_ms=round(duration * 1000, 2),
                path=request.path,
                method=request.method,
                status=status,
            )
            _request_duration(method=request.method, status=str(status or 0)).observe(duration)
            clear_context()
        return raw_sink.finish()

    def _dispatch(self, w: ResponseWriter, request: Request) -> None:
        try:
            handler = self.router.match(request.raw)
        except RequestRedirect as exc:
            w.redirect(exc.new_url, exc.code)
            return
        except MethodNotAllowed as exc:
            if exc.valid_methods:
                w.header()["Allow"] = ", ".join(exc.valid_methods)
            w.api_error(_route_status(
                HTTP.METHOD_NOT_ALLOWED,
                StatusReason.METHOD_NOT_ALLOWED,
                f"method {request.method} is not allowed for {request.path}",
            ))
            return
        except NotFound:
            w.api_error(_route_status(
                HTTP.NOT_FOUND,
                StatusReason.NOT_FOUND,
                "the server could not find the requested resource",
            ))
            return

        try:
            handler(w)
        except SetupError:
            raise
        except RenderError:
            # ResponseWriter already logged it and wrote the fallback
            return
        except Exception as exc:
            self._log.exception("handler.unhandled", path=request.path, error=str(exc))
            if not w.written():
                try:
                    w.api_error(exc)
                except RenderError:
                    # the writer already logged it and wrote the fallback
                    return


__all__ = ["ResponseWSGIApp"]
