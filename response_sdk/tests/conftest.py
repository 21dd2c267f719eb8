"""
response_sdk test configuration.

Tests drive the response layer through werkzeug's EnvironBuilder and test
Client; no server or external services required.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import pytest

# ── Force test settings ────────────────────────────────────────────────────
# These must be set before any response_sdk modules read the config.

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RESPONSE_ERROR_BACKEND", "none")
os.environ.setdefault("RESPONSE_LOG_LEVEL", "WARNING")

from jinja2 import DictLoader  # noqa: E402
from werkzeug.datastructures import Headers  # noqa: E402
from werkzeug.test import EnvironBuilder  # noqa: E402
from werkzeug.wrappers import Request as WerkzeugRequest  # noqa: E402

from response_sdk.tier1_runtime.context import RequestContext  # noqa: E402
from response_sdk.tier1_runtime.render import Renderer  # noqa: E402
from response_sdk.tier1_runtime.request import Request  # noqa: E402
from response_sdk.tier1_runtime.response import ResponseWriter  # noqa: E402
from response_sdk.tier1_runtime.router import set_route_param  # noqa: E402
from response_sdk.tier1_runtime.sink import ResponseSink, TrackedResponseSink  # noqa: E402

TEMPLATES = {
    "hello.html": "Hello {{ name }}!",
    "layout.html": "<main>{{ content }}</main>",
    "broken.html": "{{ missing.attr }}",
    "user.tmpl": "{{ data.name }}",
}


class RecordingLogger:
    """Stands in for a structlog logger; keeps (level, event, fields)."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **fields: Any) -> None:
        self.records.append((level, event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        self._record("debug", event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._record("info", event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._record("warning", event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._record("error", event, **fields)

    def exception(self, event: str, **fields: Any) -> None:
        self._record("exception", event, **fields)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.records if level is None or lvl == level]


@dataclass
class Exchange:
    """One request/response cycle driven directly against a ResponseWriter."""
    writer: ResponseWriter
    sink: ResponseSink
    log: RecordingLogger
    context: RequestContext
    started: list[tuple[str, list[tuple[str, str]]]] = field(default_factory=list)

    @property
    def status_line(self) -> str:
        return self.started[0][0]

    @property
    def headers(self) -> Headers:
        return Headers(self.started[0][1])

    def body(self) -> bytes:
        return b"".join(self.sink.finish())


@pytest.fixture
def renderer() -> Renderer:
    return Renderer(loader=DictLoader(TEMPLATES))


@pytest.fixture
def make_exchange(renderer):
    """
    Build an Exchange. ``route`` maps route names to already-escaped values;
    ``track=False`` leaves the raw sink without write tracking.
    """

    def _make(
        path: str = "/",
        method: str = "GET",
        query_string: str | None = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        route: dict[str, str] | None = None,
        context: RequestContext | None = None,
        track: bool = True,
    ) -> Exchange:
        environ = EnvironBuilder(
            path=path,
            method=method,
            query_string=query_string,
            data=data,
            headers=headers,
        ).get_environ()
        raw = WerkzeugRequest(environ)
        for name, escaped in (route or {}).items():
            set_route_param(raw, name, escaped)

        log = RecordingLogger()
        started: list = []

        def start_response(status, response_headers, exc_info=None):
            started.append((status, list(response_headers)))

        raw_sink = ResponseSink(start_response, log)
        sink = TrackedResponseSink(raw_sink) if track else raw_sink
        ctx = context or RequestContext()
        writer = ResponseWriter(sink, Request(raw, ctx), renderer, log)
        return Exchange(writer=writer, sink=raw_sink, log=log, context=ctx, started=started)

    return _make


@pytest.fixture
def error_handlers():
    """Record translation anomalies; restores the handler list afterwards."""
    import response_sdk.tier1_runtime.translate as _translate

    seen: list[BaseException] = []
    original = list(_translate.ERROR_HANDLERS)
    _translate.ERROR_HANDLERS.append(seen.append)
    yield seen
    _translate.ERROR_HANDLERS[:] = original
