"""
response_sdk.tier1_runtime.response
─────────────────────────────────────
ResponseWriter: the object a handler receives for one request/response
cycle. It wraps the raw sink and the inbound Request and provides

  - render methods (data/html/json/jsonp/text/xml) backed by a Renderer
  - plain-text errors and API Status errors (api_error)
  - write state (written/status/bytes_written) read from a tracking sink
  - typed route/query parameter accessors
  - passthrough of the request context (deadline/done/err/value)

Not safe for concurrent use; one instance per request.

Usage::

    def show_user(w: ResponseWriter) -> None:
        user = users.get(w.param_int64("id"))
        if user is None:
            w.api_error(new_not_found("user", w.param("id")))
            return
        w.json(200, user)
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import IO, Any, Callable
from urllib.parse import urlsplit

from jinja2 import Template
from werkzeug.datastructures import Headers
from werkzeug.utils import redirect as _redirect_response
from werkzeug.utils import send_file
from werkzeug.wrappers import Response as WerkzeugResponse

from response_sdk.tier0_core.config import get_config
from response_sdk.tier0_core.errors import ContextError, RenderError, SetupError
from response_sdk.tier0_core.http import HTTP, status_text
from response_sdk.tier0_core.logging import get_logger
from response_sdk.tier0_core.metrics import counter
from response_sdk.tier1_runtime.params import (
    Forms,
    parse_float,
    parse_int,
    parse_int64,
    route_param,
    set_param,
)
from response_sdk.tier1_runtime.render import Engine, HTMLOptions, Renderer
from response_sdk.tier1_runtime.request import Request
from response_sdk.tier1_runtime.sink import Sink, TrackingSink
from response_sdk.tier1_runtime.translate import to_api_status

_render_failures_total = counter(
    "response_render_failures_total",
    "Render calls whose payload could not be encoded",
    ["engine"],
)


class ResponseWriter:
    """
    Response wrapper for one request. ``logger`` defaults to
    ``get_logger(config.logger_name)``.
    """

    def __init__(
        self,
        sink: Sink,
        request: Request,
        renderer: Renderer,
        logger: Any = None,
    ) -> None:
        self._sink = sink
        self._req = request
        self._r = renderer
        self._log = logger if logger is not None else get_logger(get_config().logger_name)

    # ── Raw sink ──────────────────────────────────────────────────────────

    def header(self) -> Headers:
        return self._sink.header()

    def write_header(self, status: int) -> None:
        self._sink.write_header(status)

    def write(self, data: bytes) -> int:
        return self._sink.write(data)

    def r(self) -> Request:
        return self._req

    # ── Rendering ─────────────────────────────────────────────────────────

    def template_lookup(self, name: str) -> Template | None:
        return self._r.template_lookup(name)

    def render(self, engine: Engine, data: Any) -> None:
        self._rendering(self._r.render, engine, data)

    def data(self, status: int, v: bytes) -> None:
        self._rendering(self._r.data, status, v)

    def html(self, status: int, name: str, binding: Any, options: HTMLOptions | None = None) -> None:
        self._rendering(self._r.html, status, name, binding, options)

    def json(self, status: int, v: Any) -> None:
        self._rendering(self._r.json, status, v)

    def jsonp(self, status: int, callback: str, v: Any) -> None:
        self._rendering(self._r.jsonp, status, callback, v)

    def text(self, status: int, v: str) -> None:
        self._rendering(self._r.text, status, v)

    def xml(self, status: int, v: Any) -> None:
        self._rendering(self._r.xml, status, v)

    def html_string(self, name: str, binding: Any, options: HTMLOptions | None = None) -> str:
        """Render a template to a string for embedding; nothing is written."""
        return self._r.html_string(name, binding, options)

    def _rendering(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(self._sink, *args)
        except RenderError as exc:
            self._log.error(
                "render.failed",
                engine=exc.engine,
                reason=exc.detail,
                path=self._req.path,
            )
            _render_failures_total(engine=exc.engine or "custom").inc()
            if not self._committed():
                self._plain_error(status_text(HTTP.INTERNAL_SERVER_ERROR), HTTP.INTERNAL_SERVER_ERROR)
            raise

    # ── Errors ────────────────────────────────────────────────────────────

    def error(self, status: int, *contents: Any) -> None:
        """
        Plain-text error. ``error(404)`` writes the status text,
        ``error(400, msg)`` writes ``msg`` and ``error(500, title, err)``
        also logs ``err`` under ``title``.
        """
        title = ""
        obj: Any = None
        if len(contents) > 1:
            title, obj = str(contents[0]), contents[1]
        elif contents:
            obj = contents[0]

        message = status_text(status) if obj is None else str(obj)
        if title:
            self._log.error(title, error=message, status=status, path=self._req.path)
        self._plain_error(message, status)

    def api_error(self, err: Any) -> int:
        """
        Write ``err`` as an API Status and return the status code sent.
        A positive retry hint becomes a Retry-After header; 204 has no body.
        """
        status = to_api_status(err)
        code = status.code
        if status.retry_after_seconds > 0:
            self.header()["Retry-After"] = str(status.retry_after_seconds)

        if code == HTTP.NO_CONTENT:
            self.write_header(code)
            return code

        self.json(code, status)
        return code

    def _plain_error(self, message: str, status: int) -> None:
        headers = self.header()
        headers.pop("Content-Length", None)
        headers["Content-Type"] = "text/plain; charset=utf-8"
        headers["X-Content-Type-Options"] = "nosniff"
        self.write_header(status)
        self.write((message + "\n").encode("utf-8"))

    # ── Write state ───────────────────────────────────────────────────────

    def _tracker(self) -> TrackingSink:
        if isinstance(self._sink, TrackingSink):
            return self._sink
        raise SetupError(
            user_message="Response write tracking is not installed.",
            detail=(
                f"{type(self._sink).__name__} does not track writes; wrap it in "
                "TrackedResponseSink or serve through ResponseWSGIApp(track_writes=True)"
            ),
        )

    def _committed(self) -> bool:
        return self._tracker().status() > 0

    def written(self) -> bool:
        """True once a status code has been sent."""
        return self._committed()

    def status(self) -> int:
        """The status code sent, or 0 if none has been sent yet."""
        return self._tracker().status()

    def bytes_written(self) -> int:
        """Total body bytes sent to the client."""
        return self._tracker().bytes_written()

    # ── Redirects and files ───────────────────────────────────────────────

    def redirect(self, location: str, status: int = HTTP.FOUND) -> None:
        self._forward(_redirect_response(location, status))

    def redirect_to_first(self, app_url: str, app_sub_url: str, *locations: str) -> None:
        """
        Redirect to the first safe location, else to ``app_sub_url + "/"``.
        Protocol-relative locations and absolute URLs outside ``app_url``
        are skipped to avoid open redirects.
        """
        for loc in locations:
            if not loc:
                continue
            # browsers treat "//host" and "/\host" as absolute
            if len(loc) > 1 and loc[0] == "/" and loc[1] in "/\\":
                continue
            try:
                parts = urlsplit(loc)
            except ValueError:
                continue
            if (parts.scheme or parts.netloc) and not loc.lower().startswith(app_url.lower()):
                continue
            self.redirect(loc)
            return
        self.redirect(app_sub_url + "/")

    def serve_content(self, name: str, reader: IO[bytes], modtime: datetime | None = None) -> None:
        """Send ``reader`` as an attachment named ``name``; honours Range and If-* headers."""
        response = send_file(
            reader,
            self._req.environ,
            mimetype="application/octet-stream",
            as_attachment=True,
            download_name=name,
            last_modified=modtime,
            conditional=True,
        )
        self._download_headers(response)
        self._forward(response)

    def serve_file(self, file: str, name: str | None = None) -> None:
        """Send the file at ``file`` as an attachment; 404 if it does not exist."""
        try:
            response = send_file(
                file,
                self._req.environ,
                as_attachment=True,
                download_name=name,
                conditional=True,
            )
        except (FileNotFoundError, IsADirectoryError):
            self.error(HTTP.NOT_FOUND)
            return
        self._download_headers(response)
        self._forward(response)

    @staticmethod
    def _download_headers(response: WerkzeugResponse) -> None:
        response.headers["Content-Description"] = "File Transfer"
        response.headers["Content-Transfer-Encoding"] = "binary"
        response.headers["Expires"] = "0"
        response.headers["Cache-Control"] = "must-revalidate"
        response.headers["Pragma"] = "public"

    def _forward(self, response: WerkzeugResponse) -> None:
        """Play a werkzeug Response into the sink as if it were a WSGI server."""
        def start_response(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> Callable:
            sink_headers = self.header()
            seen: set[str] = set()
            for key, value in headers:
                if key.lower() in seen:
                    sink_headers.add(key, value)
                else:
                    sink_headers[key] = value
                    seen.add(key.lower())
            self.write_header(int(status.split(" ", 1)[0]))
            return self.write

        app_iter = response(self._req.environ, start_response)
        try:
            for chunk in app_iter:
                self.write(chunk)
        finally:
            close = getattr(app_iter, "close", None)
            if close is not None:
                close()

    # ── Route parameters ──────────────────────────────────────────────────

    def param(self, name: str) -> str:
        return route_param(self._req, name)

    def param_int(self, name: str) -> int:
        return parse_int(self.param(name))

    def param_int64(self, name: str) -> int:
        return parse_int64(self.param(name))

    def param_float64(self, name: str) -> float:
        return parse_float(self.param(name))

    def set_param(self, name: str, value: str) -> None:
        set_param(self._req, name, value)

    # ── Query / form values ───────────────────────────────────────────────

    def _forms(self) -> Forms:
        return Forms(self._req.values)

    def query(self, key: str, *defaults: str) -> str:
        return self._forms().must_string(key, *defaults)

    def query_trim(self, key: str, *defaults: str) -> str:
        return self._forms().must_trimmed(key, *defaults)

    def query_strings(self, key: str, *defaults: list[str]) -> list[str]:
        return self._forms().must_strings(key, *defaults)

    def query_int(self, key: str, *defaults: int) -> int:
        return self._forms().must_int(key, *defaults)

    def query_int64(self, key: str, *defaults: int) -> int:
        return self._forms().must_int64(key, *defaults)

    def query_bool(self, key: str, *defaults: bool) -> bool:
        return self._forms().must_bool(key, *defaults)

    # ── Request context passthrough ───────────────────────────────────────

    def deadline(self) -> tuple[datetime | None, bool]:
        return self._req.context.deadline()

    def done(self) -> threading.Event:
        return self._req.context.done()

    def err(self) -> ContextError | None:
        return self._req.context.err()

    def value(self, key: Any) -> Any:
        return self._req.context.value(key)


__all__ = ["ResponseWriter"]
