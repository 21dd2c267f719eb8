"""
response_sdk.tier1_runtime.render
───────────────────────────────────
Render engines: encode a payload into one wire format and write it to a
sink. Every engine finishes encoding before it writes the head, so an
encoding failure raises RenderError with nothing sent.

Formats: raw bytes | HTML (Jinja2) | JSON | JSONP | plain text | XML

Minimal stack: Jinja2 for templates, stdlib json/ElementTree for encoding
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from jinja2 import (
    BaseLoader,
    Environment,
    FileSystemLoader,
    Template,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup
from pydantic import BaseModel

from response_sdk.tier0_core.config import ResponseConfig, get_config
from response_sdk.tier0_core.errors import RenderError
from response_sdk.tier1_runtime.serialize import serialize, to_dict
from response_sdk.tier1_runtime.sink import Sink

CONTENT_BINARY = "application/octet-stream"
CONTENT_HTML = "text/html"
CONTENT_JSON = "application/json"
CONTENT_JSONP = "application/javascript"
CONTENT_TEXT = "text/plain"
CONTENT_XML = "text/xml"

_XML_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")
_JSONP_CALLBACK = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


# ── Engine contract ────────────────────────────────────────────────────────

@runtime_checkable
class Engine(Protocol):
    def render(self, sink: Sink, data: Any) -> None: ...


@dataclass
class Head:
    """Content type and status written before the body."""
    content_type: str
    status: int

    def write(self, sink: Sink) -> None:
        sink.header()["Content-Type"] = self.content_type
        sink.write_header(self.status)


def _emit(sink: Sink, head: Head, body: bytes) -> None:
    head.write(sink)
    sink.write(body)


# ── Engines ────────────────────────────────────────────────────────────────

@dataclass
class DataEngine:
    """Raw bytes; keeps a Content-Type the caller already set."""
    head: Head

    def render(self, sink: Sink, data: Any) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise RenderError(
                "Data requires bytes.",
                engine="data",
                detail=f"cannot write {type(data).__name__} as raw data",
            )
        headers = sink.header()
        if "Content-Type" not in headers:
            headers["Content-Type"] = self.head.content_type
        sink.write_header(self.head.status)
        sink.write(bytes(data))


@dataclass
class HTMLEngine:
    head: Head
    name: str
    template: Template
    layout: Template | None = None

    def render(self, sink: Sink, data: Any) -> None:
        _emit(sink, self.head, self.encode(data).encode("utf-8"))

    def encode(self, data: Any) -> str:
        context = _template_context(data)
        try:
            page = self.template.render(context)
            if self.layout is not None:
                page = self.layout.render({**context, "content": Markup(page)})
        except TemplateError as exc:
            raise RenderError(
                "Template rendering failed.",
                engine="html",
                detail=f"template {self.name!r}: {exc}",
                template=self.name,
            ) from exc
        return page


@dataclass
class JSONEngine:
    head: Head
    indent: int | None = None

    def render(self, sink: Sink, data: Any) -> None:
        _emit(sink, self.head, _encode_json(data, self.indent, "json"))


@dataclass
class JSONPEngine:
    head: Head
    callback: str
    indent: int | None = None

    def render(self, sink: Sink, data: Any) -> None:
        if not _JSONP_CALLBACK.match(self.callback):
            raise RenderError(
                "Invalid JSONP callback.",
                engine="jsonp",
                detail=f"invalid callback name {self.callback!r}",
            )
        body = _encode_json(data, self.indent, "jsonp")
        _emit(sink, self.head, self.callback.encode("ascii") + b"(" + body + b");")


@dataclass
class TextEngine:
    head: Head

    def render(self, sink: Sink, data: Any) -> None:
        if isinstance(data, (bytes, bytearray)):
            body = bytes(data)
        elif isinstance(data, str):
            body = data.encode("utf-8")
        else:
            raise RenderError(
                "Text requires a string.",
                engine="text",
                detail=f"cannot write {type(data).__name__} as text",
            )
        _emit(sink, self.head, body)


@dataclass
class XMLEngine:
    head: Head
    root: str = "response"

    def render(self, sink: Sink, data: Any) -> None:
        try:
            body = encode_xml(data, self.root)
        except (TypeError, ValueError) as exc:
            raise RenderError("XML encoding failed.", engine="xml", detail=str(exc)) from exc
        _emit(sink, self.head, body)


def _encode_json(data: Any, indent: int | None, engine: str) -> bytes:
    try:
        return serialize(data, indent=indent)
    except (TypeError, ValueError) as exc:
        raise RenderError("JSON encoding failed.", engine=engine, detail=str(exc)) from exc


def _template_context(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    if isinstance(data, BaseModel):
        return {**dict(data), "data": data}
    return {"data": data}


# ── XML encoding ───────────────────────────────────────────────────────────

def encode_xml(data: Any, root: str = "response") -> bytes:
    """
    Encode ``data`` as an XML document. Elements and objects with a
    ``to_xml()`` method are written as-is; models and mappings become nested
    elements, sequences become repeated ``<item>`` elements.
    """
    if isinstance(data, ET.Element):
        element = data
    elif hasattr(data, "to_xml"):
        out = data.to_xml()
        return out.encode("utf-8") if isinstance(out, str) else bytes(out)
    else:
        if isinstance(data, BaseModel):
            root, data = type(data).__name__, to_dict(data)
        element = _element(root, data)
    body = ET.tostring(element, encoding="unicode")
    return ('<?xml version="1.0" encoding="UTF-8"?>\n' + body).encode("utf-8")


def _element(tag: Any, value: Any) -> ET.Element:
    if not isinstance(tag, str) or not _XML_NAME.match(tag):
        raise ValueError(f"invalid XML element name {tag!r}")
    el = ET.Element(tag)
    if value is None:
        return el
    if isinstance(value, BaseModel):
        value = to_dict(value)
    if isinstance(value, Mapping):
        for key, child in value.items():
            el.append(_element(key, child))
    elif isinstance(value, (list, tuple)):
        for child in value:
            el.append(_element("item", child))
    elif isinstance(value, bool):
        el.text = "true" if value else "false"
    elif isinstance(value, (str, int, float)):
        el.text = str(value)
    else:
        raise TypeError(f"xml: unsupported type {type(value).__name__}")
    return el


# ── Renderer ───────────────────────────────────────────────────────────────

@dataclass
class HTMLOptions:
    """Per-call HTML options. ``layout`` wraps the page; it sees ``content``."""
    layout: str | None = None


@dataclass
class RenderOptions:
    directory: str = "templates"
    extensions: list[str] = field(default_factory=lambda: [".tmpl", ".html"])
    layout: str | None = None
    charset: str = "UTF-8"
    indent_json: int | None = None
    xml_root: str = "response"


class Renderer:
    """
    Shared render engine factory; one per application.

    Usage::

        renderer = Renderer.from_config()
        renderer.json(sink, 200, {"ok": True})
        renderer.html(sink, 200, "users/show", {"user": user})
    """

    def __init__(self, options: RenderOptions | None = None, loader: BaseLoader | None = None) -> None:
        self.options = options or RenderOptions()
        self.env = Environment(
            loader=loader or FileSystemLoader(self.options.directory),
            autoescape=select_autoescape(["html", "htm", "xml", "tmpl"]),
        )

    @classmethod
    def from_config(cls, cfg: ResponseConfig | None = None, loader: BaseLoader | None = None) -> "Renderer":
        cfg = cfg or get_config()
        return cls(
            RenderOptions(
                directory=cfg.template_directory,
                extensions=list(cfg.template_extensions),
                charset=cfg.charset,
                indent_json=cfg.json_indent,
                xml_root=cfg.xml_root,
            ),
            loader=loader,
        )

    def _content_type(self, base: str) -> str:
        return f"{base}; charset={self.options.charset}"

    def template_lookup(self, name: str) -> Template | None:
        """Find a template by name, trying each configured extension."""
        candidates = [name] + [name + ext for ext in self.options.extensions]
        for candidate in candidates:
            try:
                return self.env.get_template(candidate)
            except TemplateNotFound:
                continue
        return None

    def render(self, sink: Sink, engine: Engine, data: Any) -> None:
        engine.render(sink, data)

    def data(self, sink: Sink, status: int, v: bytes) -> None:
        self.render(sink, DataEngine(Head(CONTENT_BINARY, status)), v)

    def html(
        self,
        sink: Sink,
        status: int,
        name: str,
        binding: Any,
        options: HTMLOptions | None = None,
    ) -> None:
        engine = self._html_engine(status, name, options)
        self.render(sink, engine, binding)

    def html_string(self, name: str, binding: Any, options: HTMLOptions | None = None) -> str:
        """Render a template to a string without writing it anywhere."""
        return self._html_engine(0, name, options).encode(binding)

    def json(self, sink: Sink, status: int, v: Any) -> None:
        head = Head(self._content_type(CONTENT_JSON), status)
        self.render(sink, JSONEngine(head, self.options.indent_json), v)

    def jsonp(self, sink: Sink, status: int, callback: str, v: Any) -> None:
        head = Head(self._content_type(CONTENT_JSONP), status)
        self.render(sink, JSONPEngine(head, callback, self.options.indent_json), v)

    def text(self, sink: Sink, status: int, v: str) -> None:
        self.render(sink, TextEngine(Head(self._content_type(CONTENT_TEXT), status)), v)

    def xml(self, sink: Sink, status: int, v: Any) -> None:
        head = Head(self._content_type(CONTENT_XML), status)
        self.render(sink, XMLEngine(head, self.options.xml_root), v)

    def _require_template(self, name: str) -> Template:
        try:
            template = self.template_lookup(name)
        except TemplateError as exc:
            raise RenderError(
                "Template could not be loaded.",
                engine="html",
                detail=f"template {name!r}: {exc}",
                template=name,
            ) from exc
        if template is None:
            raise RenderError(
                "Template not found.",
                engine="html",
                detail=f"html/template: {name!r} is undefined",
                template=name,
            )
        return template

    def _html_engine(self, status: int, name: str, options: HTMLOptions | None) -> HTMLEngine:
        template = self._require_template(name)
        layout_name = (options.layout if options else None) or self.options.layout
        layout = self._require_template(layout_name) if layout_name else None
        return HTMLEngine(Head(self._content_type(CONTENT_HTML), status), name, template, layout)


__all__ = [
    "Engine", "Head", "DataEngine", "HTMLEngine", "JSONEngine", "JSONPEngine",
    "TextEngine", "XMLEngine", "HTMLOptions", "RenderOptions", "Renderer",
    "encode_xml",
]
