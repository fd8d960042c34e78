"""Tests for perch.http and the response pipeline helpers."""

import json

import pytest

from perch.http.headers import Headers
from perch.http.request import Request
from perch.http.response import Response
from perch.server.negotiation import negotiate
from perch.server.sender import send_response


def _make_scope(**overrides: object) -> dict[str, object]:
    """Build a minimal valid ASGI HTTP scope."""
    base: dict[str, object] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 54321),
    }
    base.update(overrides)
    return base


def _make_receive(*bodies: bytes):
    """Create an ASGI receive callable that yields bodies."""
    messages = [
        {"type": "http.request", "body": body, "more_body": i < len(bodies) - 1}
        for i, body in enumerate(bodies)
    ] or [{"type": "http.request", "body": b"", "more_body": False}]
    it = iter(messages)

    async def receive():
        return next(it)

    return receive


class TestHeaders:
    def test_case_insensitive(self) -> None:
        headers = Headers(((b"Content-Type", b"text/plain"),))
        assert headers["content-type"] == "text/plain"
        assert "CONTENT-TYPE" in headers
        assert headers.get("x-missing") is None

    def test_repeated_values(self) -> None:
        headers = Headers(((b"accept", b"a"), (b"Accept", b"b")))
        assert headers["accept"] == "a"
        assert headers.get_list("accept") == ["a", "b"]
        assert len(headers) == 1
        assert list(headers) == ["accept"]


class TestRequest:
    def test_from_asgi(self) -> None:
        scope = _make_scope(
            method="POST",
            path="/users",
            query_string=b"page=2&page=3&q=",
            headers=[(b"content-type", b"application/json")],
        )
        req = Request.from_asgi(scope, _make_receive())

        assert req.method == "POST"
        assert req.path == "/users"
        assert req.query == {"page": "2", "q": ""}
        assert req.content_type == "application/json"
        assert req.client == ("127.0.0.1", 54321)
        assert req.path_params == {}

    async def test_body_chunks_and_cache(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b'{"a"', b": 1}"))
        assert await req.json() == {"a": 1}
        assert await req.text() == '{"a": 1}'

    async def test_with_path_params_shares_body_cache(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"once"))
        assert await req.body() == b"once"
        routed = req.with_path_params({"id": "1"})
        assert routed.path_params == {"id": "1"}
        assert await routed.body() == b"once"


class TestResponse:
    def test_chaining_is_immutable(self) -> None:
        original = Response("hi")
        changed = original.with_status(201).with_header("X-A", "1").with_headers({"X-B": "2"})
        assert original.status == 200
        assert original.headers == ()
        assert changed.status == 201
        assert changed.header("x-b") == "2"
        assert changed.header("x-c", "none") == "none"

    def test_body_conversions(self) -> None:
        assert Response("é").body_bytes == "é".encode()
        assert Response(b"raw").text == "raw"


class TestNegotiate:
    def test_passthrough(self) -> None:
        original = Response("hello", status=201)
        assert negotiate(original) is original

    def test_str_and_bytes(self) -> None:
        assert negotiate("<p>hi</p>").content_type.startswith("text/html")
        assert negotiate(b"\x00").content_type == "application/octet-stream"

    def test_json(self) -> None:
        result = negotiate({"items": [1, 2]})
        assert result.content_type == "application/json; charset=utf-8"
        assert json.loads(result.text) == {"items": [1, 2]}

    def test_none(self) -> None:
        assert negotiate(None).status == 204

    def test_tuples(self) -> None:
        assert negotiate(("gone", 410)).status == 410
        result = negotiate(("made", 201, {"Location": "/x"}))
        assert result.status == 201
        assert result.header("Location") == "/x"

    def test_unsupported(self) -> None:
        with pytest.raises(TypeError, match="Cannot convert int"):
            negotiate(42)


class TestSendResponse:
    async def test_no_body_statuses(self) -> None:
        for status in (204, 304):
            messages: list[dict] = []

            async def send(message: dict) -> None:
                messages.append(message)

            await send_response(Response("unexpected-body").with_status(status), send)
            headers = dict(messages[0]["headers"])
            assert headers[b"content-length"] == b"0"
            assert messages[1]["body"] == b""

    async def test_body_and_headers(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        await send_response(Response("ok").with_header("X-Thing", "yes"), send)

        assert messages[0]["type"] == "http.response.start"
        headers = messages[0]["headers"]
        assert (b"x-thing", b"yes") in headers
        assert (b"content-length", b"2") in headers
        assert messages[1] == {"type": "http.response.body", "body": b"ok"}
