"""
response_sdk.tier1_runtime.serialize
───────────────────────────────────────
JSON serialization shared by the JSON/JSONP engines and by clients that
read Status bodies back. Pydantic models are dumped with their wire aliases
and without unset optional fields.

Encoding is strict: NaN/Infinity and values with no JSON form raise
TypeError/ValueError so the render engine can report an encoding failure.
"""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return to_dict(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize(obj: Any, indent: int | None = None) -> bytes:
    """
    Serialize a Pydantic model or plain data to JSON bytes.

    Usage:
        body = serialize(status)            # → b'{"kind":"Status",...}'
        body = serialize({"id": 1}, indent=2)
    """
    if isinstance(obj, BaseModel):
        obj = to_dict(obj)
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(
        obj,
        default=_default,
        allow_nan=False,
        ensure_ascii=False,
        indent=indent,
        separators=separators,
    ).encode("utf-8", errors="backslashreplace")


def deserialize(data: bytes | str, model: Type[T]) -> T:
    """
    Deserialize JSON bytes/str into a Pydantic model.

    Usage:
        status = deserialize(response.data, Status)
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return model.model_validate_json(data)


def to_dict(obj: BaseModel) -> dict[str, Any]:
    """Convert a Pydantic model to a plain dict using wire aliases."""
    return obj.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = ["serialize", "deserialize", "to_dict"]
