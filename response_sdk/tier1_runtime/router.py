"""
response_sdk.tier1_runtime.router
───────────────────────────────────
Route matching and route-parameter storage, built on werkzeug's routing
Map. Matched values are stored path-escaped in a RouteContext that lives in
the WSGI environ for the lifetime of the request; the parameter extractor
reads (and unescapes) them from there.

Rules accept werkzeug syntax (``/users/<id>``) or colon syntax
(``/users/:id``).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import quote

from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request as WerkzeugRequest

ROUTE_CONTEXT_KEY = "response_sdk.route_context"

_COLON_PARAM = re.compile(r":([A-Za-z_]\w*)")

Handler = Callable[[Any], Any]


@dataclass
class RouteContext:
    """Route-matched values for one request, keyed without the ``:`` marker."""
    route_pattern: str = ""
    url_params: dict[str, str] = field(default_factory=dict)


def route_context(request: WerkzeugRequest) -> RouteContext:
    """Return the request's RouteContext, creating an empty one if absent."""
    ctx = request.environ.get(ROUTE_CONTEXT_KEY)
    if ctx is None:
        ctx = RouteContext()
        request.environ[ROUTE_CONTEXT_KEY] = ctx
    return ctx


def lookup_route_param(request: WerkzeugRequest, name: str) -> tuple[str, bool]:
    ctx = request.environ.get(ROUTE_CONTEXT_KEY)
    if ctx is None or name not in ctx.url_params:
        return "", False
    return ctx.url_params[name], True


def set_route_param(request: WerkzeugRequest, name: str, escaped_value: str) -> None:
    route_context(request).url_params[name] = escaped_value


def _to_rule(rule: str) -> str:
    return _COLON_PARAM.sub(r"<\1>", rule)


class Router:
    """
    Thin dispatcher over a werkzeug Map.

    Usage::

        router = Router()

        @router.route("/users/:id", methods=["GET"])
        def show_user(w):
            w.json(200, {"id": w.param_int("id")})
    """

    def __init__(self, strict_slashes: bool = True) -> None:
        self.url_map = Map(strict_slashes=strict_slashes)
        self._handlers: dict[str, Handler] = {}

    def add(
        self,
        rule: str,
        handler: Handler,
        methods: list[str] | None = None,
        endpoint: str | None = None,
    ) -> None:
        endpoint = endpoint or f"{handler.__module__}.{handler.__qualname__}"
        self.url_map.add(Rule(_to_rule(rule), endpoint=endpoint, methods=methods))
        self._handlers[endpoint] = handler

    def route(self, rule: str, methods: list[str] | None = None) -> Callable[[Handler], Handler]:
        def decorator(fn: Handler) -> Handler:
            self.add(rule, fn, methods)
            return fn
        return decorator

    def match(self, request: WerkzeugRequest) -> Handler:
        """
        Match the request and store its route values. Raises werkzeug's
        NotFound, MethodNotAllowed or RequestRedirect when nothing matches.
        """
        adapter = self.url_map.bind_to_environ(request.environ)
        rule, values = adapter.match(return_rule=True)
        ctx = route_context(request)
        ctx.route_pattern = rule.rule
        for name, value in values.items():
            ctx.url_params[name] = quote(str(value), safe="")
        return self._handlers[rule.endpoint]


__all__ = [
    "RouteContext", "Router", "route_context",
    "lookup_route_param", "set_route_param", "ROUTE_CONTEXT_KEY",
]
