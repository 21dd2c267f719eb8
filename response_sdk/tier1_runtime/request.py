"""
response_sdk.tier1_runtime.request
────────────────────────────────────
Inbound request as seen by handlers: the werkzeug request plus the
RequestContext carrying cancellation, deadline and request-scoped values.
"""
from __future__ import annotations

from typing import Any

from werkzeug.datastructures import CombinedMultiDict, MultiDict
from werkzeug.wrappers import Request as WerkzeugRequest

from response_sdk.tier1_runtime.context import RequestContext


class Request:
    """Read-only view over one inbound request."""

    def __init__(
        self,
        raw: WerkzeugRequest,
        context: RequestContext | None = None,
        max_form_memory_size: int | None = None,
    ) -> None:
        self._raw = raw
        self._context = context or RequestContext()
        if max_form_memory_size is not None:
            raw.max_form_memory_size = max_form_memory_size

    @classmethod
    def from_environ(cls, environ: dict[str, Any], context: RequestContext | None = None) -> "Request":
        return cls(WerkzeugRequest(environ), context)

    @property
    def raw(self) -> WerkzeugRequest:
        return self._raw

    @property
    def environ(self) -> dict[str, Any]:
        return self._raw.environ

    @property
    def path(self) -> str:
        return self._raw.path

    @property
    def method(self) -> str:
        return self._raw.method

    @property
    def context(self) -> RequestContext:
        return self._context

    @property
    def values(self) -> CombinedMultiDict | MultiDict:
        """Query-string values followed by form values, all multi-valued."""
        return self._raw.values

    def cookie(self, name: str, default: str = "") -> str:
        return self._raw.cookies.get(name, default)

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path!r} request_id={self._context.request_id}>"


__all__ = ["Request"]
