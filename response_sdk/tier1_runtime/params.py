"""
response_sdk.tier1_runtime.params
───────────────────────────────────
Typed accessors for route parameters and query/form values.

Coercion never raises: a value that is present but does not parse yields
the type's zero value (0, 0.0, False). Caller defaults are only used when
the key is absent; an empty string counts as absent for single values.
"""
from __future__ import annotations

import re
from urllib.parse import quote, unquote

from werkzeug.datastructures import MultiDict

from response_sdk.tier1_runtime.request import Request
from response_sdk.tier1_runtime.router import lookup_route_param, set_route_param

_INT = re.compile(r"[+-]?[0-9]+")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

_TRUE = frozenset({"1", "t", "true", "y", "yes", "on"})


# ── Parsers ────────────────────────────────────────────────────────────────

def parse_int(s: str) -> int:
    if not _INT.fullmatch(s):
        return 0
    return int(s)


def parse_int64(s: str) -> int:
    v = parse_int(s)
    if v < INT64_MIN or v > INT64_MAX:
        return 0
    return v


def parse_float(s: str) -> float:
    if not s or "_" in s or s != s.strip():
        return 0.0
    try:
        return float(s)
    except ValueError:
        return 0.0


def parse_bool(s: str) -> bool:
    """True for 1/t/true/y/yes/on (any case, no padding); anything else is False."""
    return s.lower() in _TRUE


# ── Route parameters ───────────────────────────────────────────────────────

def _param_name(name: str) -> str:
    return name[1:] if name.startswith(":") else name


def route_param(request: Request, name: str) -> str:
    """Path-unescaped route value; empty string if absent or badly escaped."""
    raw, found = lookup_route_param(request.raw, _param_name(name))
    if not found or _BAD_ESCAPE.search(raw):
        return ""
    try:
        return unquote(raw, errors="strict")
    except UnicodeDecodeError:
        return ""


def set_param(request: Request, name: str, value: str) -> None:
    set_route_param(request.raw, _param_name(name), quote(value, safe=""))


# ── Query / form values ────────────────────────────────────────────────────

class Forms:
    """
    Defaulting accessors over combined query and form values.

    Usage::

        forms = Forms(request.values)
        page = forms.must_int("page", 1)
        tags = forms.must_strings("tag", ["all"])
    """

    def __init__(self, values: MultiDict) -> None:
        self._values = values

    def _first(self, key: str) -> str | None:
        values = self._values.getlist(key)
        if not values or values[0] == "":
            return None
        return values[0]

    def must_string(self, key: str, *defaults: str) -> str:
        v = self._first(key)
        if v is None:
            return defaults[0] if defaults else ""
        return v

    def must_trimmed(self, key: str, *defaults: str) -> str:
        v = self._first(key)
        if v is None:
            return defaults[0] if defaults else ""
        return v.strip()

    def must_strings(self, key: str, *defaults: list[str]) -> list[str]:
        values = self._values.getlist(key)
        if values:
            return list(values)
        return list(defaults[0]) if defaults else []

    def must_int(self, key: str, *defaults: int) -> int:
        v = self._first(key)
        if v is None:
            return defaults[0] if defaults else 0
        return parse_int(v)

    def must_int64(self, key: str, *defaults: int) -> int:
        v = self._first(key)
        if v is None:
            return defaults[0] if defaults else 0
        return parse_int64(v)

    def must_bool(self, key: str, *defaults: bool) -> bool:
        v = self._first(key)
        if v is None:
            return defaults[0] if defaults else False
        return parse_bool(v)


__all__ = [
    "Forms", "route_param", "set_param",
    "parse_int", "parse_int64", "parse_float", "parse_bool",
]
