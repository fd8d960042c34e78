"""Tests for perch.app: composition on first use, ASGI entry, and lifespan."""

import asyncio
import logging
import threading
from typing import Any

import pytest

from perch.app import App
from perch.config import AppConfig
from perch.errors import HTTPError, InitializerFailure
from perch.extension import extension, make_extension
from perch.handle import key
from perch.http.request import Request
from perch.http.response import Response
from perch.testing import TestClient


def site_with(*routes: tuple, hooks: dict[str, list] | None = None):
    def initialize(ctx):
        ctx.add_routes(routes)
        for hook in (hooks or {}).get("startup", []):
            ctx.on_startup(hook)
        for hook in (hooks or {}).get("unload", []):
            ctx.on_unload(hook)

    return make_extension("site", "", None, initialize)


class TestAppFreeze:
    def test_composes_lazily(self) -> None:
        calls: list[str] = []

        @extension("site")
        def site(ctx):
            calls.append("init")

        app = App(site)
        assert calls == []
        assert repr(app) == "<App 'site' (pending)>"
        app.application
        app.application
        assert calls == ["init"]
        assert repr(app) == "<App 'site' (frozen)>"

    def test_router_compiled(self) -> None:
        app = App(site_with(("/", lambda: "home")))
        assert [route.path for route in app.router.routes] == ["/"]

    def test_concurrent_first_use_composes_once(self) -> None:
        calls: list[int] = []

        @extension("site")
        def site(ctx):
            calls.append(1)

        app = App(site)
        threads = [threading.Thread(target=lambda: app.application) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert calls == [1]

    def test_composition_error_surfaces(self) -> None:
        @extension("site")
        def site(ctx):
            raise RuntimeError("bad config")

        with pytest.raises(InitializerFailure):
            App(site).application

    def test_default_config(self) -> None:
        app = App(site_with())
        assert app.config == AppConfig()


class TestAppE2E:
    async def test_hello_world(self) -> None:
        async with TestClient(App(site_with(("/", lambda: "Hello, World!")))) as client:
            response = await client.get("/")
            assert response.status == 200
            assert response.text == "Hello, World!"

    async def test_typed_path_params(self) -> None:
        def user(id: int):
            return {"id": id, "type": type(id).__name__}

        async with TestClient(site_with(("/users/{id:int}", user))) as client:
            response = await client.get("/users/42")
            assert response.text == '{"id": 42, "type": "int"}'

    async def test_request_injection(self) -> None:
        async def echo(request: Request):
            body = await request.json()
            return f"{request.method} {request.path} {request.query.get('q')} {body['n']}"

        async with TestClient(site_with(("/echo", echo, ["POST"]))) as client:
            response = await client.post("/echo?q=perch", json={"n": 3})
            assert response.text == "POST /echo perch 3"

    async def test_404_and_405(self) -> None:
        async with TestClient(site_with(("/items", lambda: "items"))) as client:
            missing = await client.get("/nonexistent")
            wrong = await client.delete("/items")

        assert missing.status == 404
        assert wrong.status == 405
        assert wrong.header("allow") == "GET"

    async def test_head_strips_body(self) -> None:
        async with TestClient(site_with(("/", lambda: "body"))) as client:
            response = await client.head("/")
        assert response.status == 200
        assert response.body == b""

    async def test_tuple_status_and_headers(self) -> None:
        def created():
            return ("Resource created", 201, {"X-Id": "7"})

        async with TestClient(site_with(("/created", created, ["PUT"]))) as client:
            response = await client.put("/created")
        assert response.status == 201
        assert response.text == "Resource created"
        assert response.header("x-id") == "7"

    async def test_response_passthrough(self) -> None:
        def custom():
            return Response("teapot").with_status(418).with_content_type("text/plain")

        async with TestClient(site_with(("/", custom))) as client:
            response = await client.get("/")
        assert response.status == 418
        assert response.content_type == "text/plain"

    async def test_none_is_no_content(self) -> None:
        async with TestClient(site_with(("/", lambda: None))) as client:
            response = await client.get("/")
        assert response.status == 204
        assert response.body == b""

    async def test_handler_http_error(self) -> None:
        def forbidden():
            raise HTTPError(status=403, detail="members only")

        async with TestClient(site_with(("/", forbidden))) as client:
            response = await client.get("/")
        assert response.status == 403
        assert response.text == "members only"

    async def test_unhandled_exception_is_500(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken():
            raise ValueError("kaboom")

        with caplog.at_level(logging.ERROR, logger="perch.server"):
            async with TestClient(site_with(("/", broken))) as client:
                response = await client.get("/")

        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "500 GET /" in caplog.text

    async def test_debug_shows_traceback(self) -> None:
        def broken():
            raise ValueError("kaboom")

        app = App(site_with(("/", broken)), AppConfig(debug=True))
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "ValueError: kaboom" in response.text

    async def test_unsupported_return_value(self) -> None:
        async with TestClient(site_with(("/", lambda: object()))) as client:
            response = await client.get("/")
        assert response.status == 500


class TestTestClientHooks:
    async def test_hooks_run_around_client(self) -> None:
        events: list[str] = []

        async def start():
            events.append("start")

        site = site_with(
            ("/", lambda: "ok"),
            hooks={"startup": [start], "unload": [lambda: events.append("unload")]},
        )
        async with TestClient(App(site)) as client:
            assert events == ["start"]
            await client.get("/")
        assert events == ["start", "unload"]


async def _lifespan_exchange(app: App) -> tuple[list[dict[str, Any]], bool]:
    """Drive the full lifespan protocol and return messages sent by the app."""
    sent: list[dict[str, Any]] = []
    receive_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def receive() -> dict[str, Any]:
        return await receive_queue.get()

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    scope: dict[str, Any] = {
        "type": "lifespan",
        "asgi": {"version": "3.0", "spec_version": "2.0"},
    }

    task = asyncio.create_task(app(scope, receive, send))

    await receive_queue.put({"type": "lifespan.startup"})
    await asyncio.sleep(0.01)

    startup_ok = any(m["type"] == "lifespan.startup.complete" for m in sent)

    if startup_ok:
        await receive_queue.put({"type": "lifespan.shutdown"})
    await asyncio.wait_for(task, timeout=2.0)

    return sent, startup_ok


class TestLifespanProtocol:
    async def test_happy_path(self) -> None:
        events: list[str] = []

        @extension("db")
        def db(ctx):
            ctx.on_startup(lambda: events.append("db:start"))
            ctx.on_unload(lambda: events.append("db:unload"))
            return "db"

        @extension("site")
        def site(ctx):
            async def setup():
                events.append("site:start")

            ctx.on_startup(setup)
            ctx.on_unload(lambda: events.append("site:unload"))
            return {"db": ctx.mount("db", key("db"), db)}

        sent, ok = await _lifespan_exchange(App(site))

        assert ok is True
        assert events == ["db:start", "site:start", "site:unload", "db:unload"]
        types = [m["type"] for m in sent]
        assert types == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_startup_failure(self) -> None:
        async def bad_setup():
            msg = "Database connection refused"
            raise ConnectionError(msg)

        sent, ok = await _lifespan_exchange(App(site_with(hooks={"startup": [bad_setup]})))

        assert ok is False
        failed = [m for m in sent if m["type"] == "lifespan.startup.failed"]
        assert len(failed) == 1
        assert "Database connection refused" in failed[0]["message"]

    async def test_app_is_frozen_at_startup(self) -> None:
        app = App(site_with(("/", lambda: "ok")))
        assert repr(app).endswith("(pending)>")
        _, ok = await _lifespan_exchange(app)
        assert ok is True
        assert repr(app).endswith("(frozen)>")
