"""
response_sdk.tier1_runtime.sink
─────────────────────────────────
Raw write sinks between the response layer and the WSGI transport.

ResponseSink is the raw sink: headers, one status line, body bytes. It
does not expose what it has written. TrackedResponseSink wraps any sink and
records the status code and byte count; the ResponseWriter requires it for
Written/Status/BytesWritten.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from werkzeug.datastructures import Headers

from response_sdk.tier0_core.http import HTTP, status_line


# ── Protocols ──────────────────────────────────────────────────────────────

@runtime_checkable
class Sink(Protocol):
    def header(self) -> Headers: ...
    def write_header(self, status: int) -> None: ...
    def write(self, data: bytes) -> int: ...


@runtime_checkable
class TrackingSink(Sink, Protocol):
    """A sink that reports what has been sent through it."""

    def status(self) -> int: ...
    def bytes_written(self) -> int: ...
    def unwrap(self) -> Sink: ...


# ── WSGI raw sink ──────────────────────────────────────────────────────────

class ResponseSink:
    """
    Raw sink over a WSGI ``start_response``. The status line and headers are
    sent on the first ``write_header`` (or the first ``write``, as 200);
    later status writes are ignored. Header changes after that are not sent.
    """

    def __init__(self, start_response: Callable[..., Any], logger: Any = None) -> None:
        self._start_response = start_response
        self._headers = Headers()
        self._chunks: list[bytes] = []
        self._wrote_header = False
        self._log = logger

    def header(self) -> Headers:
        return self._headers

    def write_header(self, status: int) -> None:
        if self._wrote_header:
            if self._log is not None:
                self._log.warning("response.superfluous_write_header", status=status)
            return
        self._wrote_header = True
        self._start_response(status_line(status), self._headers.to_wsgi_list())

    def write(self, data: bytes) -> int:
        if not self._wrote_header:
            self.write_header(HTTP.OK)
        if not data:
            return 0
        self._chunks.append(bytes(data))
        return len(data)

    def finish(self) -> Iterable[bytes]:
        """Commit an empty 200 if the handler sent nothing; return the WSGI body."""
        if not self._wrote_header:
            self.write_header(HTTP.OK)
        return self._chunks


# ── Write tracking ─────────────────────────────────────────────────────────

class TrackedResponseSink:
    """
    Wraps a sink and records the first status code and the number of body
    bytes passed through. Install beneath the ResponseWriter (the WSGI app
    does this unless ``track_writes=False``).
    """

    def __init__(self, sink: Sink) -> None:
        self._sink = sink
        self._code = 0
        self._bytes = 0

    def header(self) -> Headers:
        return self._sink.header()

    def write_header(self, status: int) -> None:
        if self._code == 0:
            self._code = status
        self._sink.write_header(status)

    def write(self, data: bytes) -> int:
        if self._code == 0:
            self.write_header(HTTP.OK)
        n = self._sink.write(data)
        self._bytes += n
        return n

    def status(self) -> int:
        return self._code

    def bytes_written(self) -> int:
        return self._bytes

    def unwrap(self) -> Sink:
        return self._sink


__all__ = ["Sink", "TrackingSink", "ResponseSink", "TrackedResponseSink"]
