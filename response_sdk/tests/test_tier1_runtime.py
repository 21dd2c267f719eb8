"""Tests for tier1_runtime modules (everything below the ResponseWriter)."""
from __future__ import annotations

import json
import math
import xml.etree.ElementTree as ET

import pytest
from pydantic import BaseModel
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request as WerkzeugRequest

from response_sdk.tier0_core.errors import (
    ContextCanceled,
    DeadlineExceeded,
    RenderError,
    StatusError,
    new_too_many_requests,
)
from response_sdk.tier0_core.status import (
    STATUS_FAILURE,
    STATUS_SUCCESS,
    Status,
    StatusDetails,
    StatusReason,
)
from response_sdk.tier1_runtime.context import RequestContext, get_context, set_context
from response_sdk.tier1_runtime.params import (
    Forms,
    parse_bool,
    parse_float,
    parse_int,
    parse_int64,
)
from response_sdk.tier1_runtime.render import HTMLOptions, encode_xml
from response_sdk.tier1_runtime.router import Router, lookup_route_param, set_route_param
from response_sdk.tier1_runtime.serialize import deserialize, serialize
from response_sdk.tier1_runtime.sink import ResponseSink, TrackedResponseSink, TrackingSink
from response_sdk.tier1_runtime.translate import to_api_status

from conftest import RecordingLogger


def _werkzeug_request(path: str = "/", method: str = "GET", **kwargs) -> WerkzeugRequest:
    return WerkzeugRequest(EnvironBuilder(path=path, method=method, **kwargs).get_environ())


class _Sink:
    """Raw sink capture for render tests."""

    def __init__(self) -> None:
        self.started: list = []
        self.raw = ResponseSink(lambda status, headers, exc_info=None: self.started.append((status, headers)))
        self.tracked = TrackedResponseSink(self.raw)

    def body(self) -> bytes:
        return b"".join(self.raw.finish())

    def header(self, name: str) -> str | None:
        return dict(self.started[0][1]).get(name)


# ── context ────────────────────────────────────────────────────────────────

class TestContext:
    def test_set_and_get_context(self):
        ctx = RequestContext(request_id="req-abc", trace_id="trace-xyz")
        set_context(ctx)
        assert get_context() is ctx

    def test_context_defaults(self):
        ctx = RequestContext()
        assert ctx.request_id
        assert ctx.err() is None
        assert ctx.deadline() == (None, False)
        assert not ctx.done().is_set()

    def test_cancel_sets_done_and_err(self):
        ctx = RequestContext()
        ctx.cancel()
        assert ctx.done().is_set()
        assert isinstance(ctx.err(), ContextCanceled)

    def test_second_cancel_keeps_first_error(self):
        ctx = RequestContext.with_timeout(60)
        ctx.cancel()
        ctx.cancel()
        assert isinstance(ctx.err(), ContextCanceled)

    def test_timeout_expires_with_deadline_exceeded(self):
        ctx = RequestContext.with_timeout(0.01)
        deadline, ok = ctx.deadline()
        assert ok and deadline is not None
        assert ctx.done().wait(2.0)
        assert isinstance(ctx.err(), DeadlineExceeded)

    def test_with_value_shares_cancellation(self):
        parent = RequestContext(values={"a": 1})
        child = parent.with_value("b", 2)
        assert child.value("a") == 1
        assert child.value("b") == 2
        assert parent.value("b") is None
        parent.cancel()
        assert child.done().is_set()


# ── serialize ──────────────────────────────────────────────────────────────

class TestSerialize:
    def test_serialize_dict_is_compact(self):
        assert serialize({"id": 1, "name": "Alice"}) == b'{"id":1,"name":"Alice"}'

    def test_serialize_model_uses_aliases(self):
        body = serialize(Status(api_version="v1", details=StatusDetails(retry_after_seconds=3)))
        assert json.loads(body) == {"apiVersion": "v1", "code": 0, "details": {"retryAfterSeconds": 3}}

    def test_lone_surrogate_is_escaped(self):
        body = serialize({"message": "bad \udcff"})
        body.decode("ascii")
        assert json.loads(body) == {"message": "bad \udcff"}

    def test_nan_is_an_encoding_failure(self):
        with pytest.raises(ValueError):
            serialize({"x": math.nan})

    def test_unknown_type_is_an_encoding_failure(self):
        with pytest.raises(TypeError):
            serialize({"x": object()})

    def test_deserialize_status(self):
        status = deserialize(b'{"kind":"Status","code":404,"reason":"NotFound"}', Status)
        assert status.code == 404
        assert status.reason == StatusReason.NOT_FOUND


# ── sink ───────────────────────────────────────────────────────────────────

class TestSink:
    def test_raw_sink_is_not_tracking(self):
        assert not isinstance(ResponseSink(lambda *a: None), TrackingSink)
        assert isinstance(TrackedResponseSink(ResponseSink(lambda *a: None)), TrackingSink)

    def test_first_write_commits_200(self):
        s = _Sink()
        s.tracked.write(b"abc")
        assert s.started[0][0] == "200 OK"
        assert s.tracked.status() == 200
        assert s.tracked.bytes_written() == 3
        assert s.body() == b"abc"

    def test_second_status_is_ignored_and_logged(self):
        log = RecordingLogger()
        started: list = []
        sink = TrackedResponseSink(ResponseSink(lambda st, h, e=None: started.append(st), log))
        sink.write_header(201)
        sink.write_header(500)
        assert started == ["201 Created"]
        assert sink.status() == 201
        assert log.events("warning") == ["response.superfluous_write_header"]

    def test_headers_after_commit_are_not_sent(self):
        s = _Sink()
        s.tracked.header()["X-Before"] = "1"
        s.tracked.write_header(200)
        s.tracked.header()["X-After"] = "1"
        assert s.header("X-Before") == "1"
        assert s.header("X-After") is None

    def test_finish_commits_empty_200(self):
        s = _Sink()
        assert s.body() == b""
        assert s.started[0][0] == "200 OK"

    def test_unwrap(self):
        raw = ResponseSink(lambda *a: None)
        assert TrackedResponseSink(raw).unwrap() is raw


# ── render ─────────────────────────────────────────────────────────────────

class TestRender:
    def test_json(self, renderer):
        s = _Sink()
        renderer.json(s.tracked, 201, {"ok": True})
        assert s.started[0][0] == "201 Created"
        assert s.header("Content-Type") == "application/json; charset=UTF-8"
        assert s.body() == b'{"ok":true}'

    def test_json_failure_leaves_sink_untouched(self, renderer):
        s = _Sink()
        with pytest.raises(RenderError) as exc_info:
            renderer.json(s.tracked, 200, {"x": math.nan})
        assert exc_info.value.engine == "json"
        assert s.tracked.status() == 0
        assert s.started == []

    def test_jsonp(self, renderer):
        s = _Sink()
        renderer.jsonp(s.tracked, 200, "app.cb", [1, 2])
        assert s.header("Content-Type") == "application/javascript; charset=UTF-8"
        assert s.body() == b"app.cb([1,2]);"

    def test_jsonp_rejects_script_callback(self, renderer):
        with pytest.raises(RenderError):
            renderer.jsonp(_Sink().tracked, 200, "alert(1)", {})

    def test_text(self, renderer):
        s = _Sink()
        renderer.text(s.tracked, 200, "héllo")
        assert s.header("Content-Type") == "text/plain; charset=UTF-8"
        assert s.body() == "héllo".encode("utf-8")

    def test_data_keeps_existing_content_type(self, renderer):
        s = _Sink()
        s.tracked.header()["Content-Type"] = "image/png"
        renderer.data(s.tracked, 200, b"\x89PNG")
        assert s.header("Content-Type") == "image/png"
        assert s.body() == b"\x89PNG"

    def test_data_default_content_type(self, renderer):
        s = _Sink()
        renderer.data(s.tracked, 200, b"\x00")
        assert s.header("Content-Type") == "application/octet-stream"

    def test_xml(self, renderer):
        s = _Sink()
        renderer.xml(s.tracked, 200, {"user": {"id": 1, "tags": ["a", "b"], "admin": False}})
        assert s.header("Content-Type") == "text/xml; charset=UTF-8"
        root = ET.fromstring(s.body())
        assert root.tag == "response"
        assert root.findtext("user/id") == "1"
        assert [t.text for t in root.findall("user/tags/item")] == ["a", "b"]
        assert root.findtext("user/admin") == "false"

    def test_xml_model_root_is_class_name(self):
        class User(BaseModel):
            name: str

        assert ET.fromstring(encode_xml(User(name="bob"))).tag == "User"

    def test_xml_invalid_name_fails(self, renderer):
        with pytest.raises(RenderError):
            renderer.xml(_Sink().tracked, 200, {"bad key": 1})

    def test_template_lookup_tries_extensions(self, renderer):
        assert renderer.template_lookup("hello") is not None
        assert renderer.template_lookup("user") is not None
        assert renderer.template_lookup("nope") is None

    def test_html_escapes(self, renderer):
        s = _Sink()
        renderer.html(s.tracked, 200, "hello", {"name": "<b>"})
        assert s.header("Content-Type") == "text/html; charset=UTF-8"
        assert s.body() == b"Hello &lt;b&gt;!"

    def test_html_with_layout(self, renderer):
        out = renderer.html_string("hello", {"name": "bob"}, HTMLOptions(layout="layout"))
        assert out == "<main>Hello bob!</main>"

    def test_html_non_mapping_binding_is_data(self, renderer):
        class User(BaseModel):
            name: str

        assert renderer.html_string("user", User(name="ann")) == "ann"

    def test_html_missing_template(self, renderer):
        with pytest.raises(RenderError):
            renderer.html(_Sink().tracked, 200, "nope", {})

    def test_html_template_error(self, renderer):
        s = _Sink()
        with pytest.raises(RenderError):
            renderer.html(s.tracked, 200, "broken", {})
        assert s.started == []


# ── router ─────────────────────────────────────────────────────────────────

class TestRouter:
    def test_colon_rule_matches_and_stores_escaped_values(self):
        router = Router()

        @router.route("/files/:name")
        def show(w):
            return w

        req = _werkzeug_request("/files/a%20b")
        assert router.match(req) is show
        assert lookup_route_param(req, "name") == ("a%20b", True)

    def test_missing_param(self):
        assert lookup_route_param(_werkzeug_request(), "id") == ("", False)

    def test_set_route_param_overwrites(self):
        req = _werkzeug_request()
        set_route_param(req, "id", "1")
        set_route_param(req, "id", "2")
        assert lookup_route_param(req, "id") == ("2", True)


# ── params ─────────────────────────────────────────────────────────────────

class TestParsers:
    @pytest.mark.parametrize("raw, expected", [
        ("42", 42), ("-7", -7), ("+3", 3), ("abc", 0), ("", 0), ("1_000", 0), (" 1", 0), ("1.5", 0),
        ("12\n", 0), ("-3\n", 0),
    ])
    def test_parse_int(self, raw, expected):
        assert parse_int(raw) == expected

    def test_parse_int64_range(self):
        assert parse_int64("9223372036854775807") == 9223372036854775807
        assert parse_int64("42\n") == 0
        assert parse_int64("9223372036854775808") == 0

    @pytest.mark.parametrize("raw, expected", [
        ("3.5", 3.5), ("1e3", 1000.0), ("x", 0.0), ("", 0.0), ("1_0", 0.0),
    ])
    def test_parse_float(self, raw, expected):
        assert parse_float(raw) == expected

    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ("TRUE", True), ("1", True), ("on", True), ("Yes", True),
        ("false", False), ("0", False), ("off", False), ("maybe", False),
        (" true ", False), ("yes\n", False),
    ])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected


class TestForms:
    def _forms(self, query_string: str) -> Forms:
        return Forms(_werkzeug_request(query_string=query_string).values)

    def test_strings_in_order(self):
        assert self._forms("tag=a&tag=b").must_strings("tag") == ["a", "b"]

    def test_strings_default(self):
        assert self._forms("").must_strings("tag", ["x"]) == ["x"]
        assert self._forms("").must_strings("tag") == []

    def test_default_only_when_absent(self):
        forms = self._forms("page=abc&empty=")
        assert forms.must_int("missing", 3) == 3
        assert forms.must_int("empty", 3) == 3
        assert forms.must_int("page", 3) == 0

    def test_trimmed(self):
        assert self._forms("q=%20%20hi%20%20").must_trimmed("q") == "hi"
        assert self._forms("q=%20%20hi%20%20").must_string("q") == "  hi  "


# ── translate ──────────────────────────────────────────────────────────────

class TestTranslate:
    def test_none_is_success(self):
        status = to_api_status(None)
        assert status.status == STATUS_SUCCESS
        assert status.code == 200
        assert status.message is None
        assert (status.kind, status.api_version) == ("Status", "v1")

    def test_opaque_error(self, error_handlers):
        status = to_api_status(ValueError("boom"))
        assert status.status == STATUS_FAILURE
        assert status.code == 500
        assert status.reason == StatusReason.UNKNOWN
        assert status.message == "boom"
        assert len(error_handlers) == 1
        assert isinstance(error_handlers[0].__cause__, ValueError)

    def test_structured_success_defaults_to_200(self, error_handlers):
        status = to_api_status(StatusError(Status(status=STATUS_SUCCESS)))
        assert status.code == 200
        assert error_handlers == []

    def test_structured_failure_defaults_to_500(self):
        assert to_api_status(StatusError(Status(status=STATUS_FAILURE))).code == 500

    def test_empty_flag_becomes_failure(self):
        status = to_api_status(StatusError(Status(code=409)))
        assert status.status == STATUS_FAILURE
        assert status.code == 409

    def test_unknown_flag_is_reported(self, error_handlers):
        status = to_api_status(StatusError(Status(status="Pending")))
        assert status.status == "Pending"
        assert status.code == 500
        assert len(error_handlers) == 1

    def test_kind_and_version_are_stamped(self):
        source = Status(kind="Other", api_version="v9", status=STATUS_FAILURE, code=404)
        status = to_api_status(StatusError(source))
        assert (status.kind, status.api_version) == ("Status", "v1")
        assert (source.kind, source.api_version) == ("Other", "v9")

    def test_retry_hint_survives(self):
        status = to_api_status(new_too_many_requests("slow down", 30))
        assert status.retry_after_seconds == 30

    def test_duck_typed_provider_returning_mapping(self):
        class Gone:
            def status(self):
                return {"status": "Failure", "code": 410, "reason": "Gone"}

        status = to_api_status(Gone())
        assert status.code == 410
        assert status.reason == StatusReason.GONE

    def test_broken_provider_is_treated_as_opaque(self, error_handlers):
        class Broken(Exception):
            status = 418  # attribute, not a method

        status = to_api_status(Broken("teapot"))
        assert status.code == 500
        assert status.message == "teapot"
        assert len(error_handlers) == 2

    def test_failing_handler_does_not_escape(self, error_handlers):
        import response_sdk.tier1_runtime.translate as _translate

        def explode(err):
            raise RuntimeError("handler down")

        _translate.ERROR_HANDLERS.insert(0, explode)
        status = to_api_status(KeyError("k"))
        assert status.code == 500
        assert len(error_handlers) == 1
