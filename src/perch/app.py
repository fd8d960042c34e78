"""The perch ASGI application.

Wraps a root extension. Composition happens once, on first use (the first
ASGI call, ``app.application``, or ``app.run()``), and the result is
immutable for the lifetime of the process.
"""

import inspect
import logging
import threading
from typing import Any

from perch._internal.types import Endpoint, Receive, Scope, Send
from perch.compose import Application, build_application
from perch.config import AppConfig
from perch.extension import Extension
from perch.provisioning import provision
from perch.routing.router import Router
from perch.server.handler import handle_request, make_dispatch

logger = logging.getLogger("perch.server")


class App:
    """An application built from a root extension.

    Thread safety:
        Composition uses a Lock + double-check so that exactly one thread
        builds the application even when several ASGI workers receive
        their first request concurrently.
    """

    __slots__ = (
        "_application",
        "_endpoint",
        "_freeze_lock",
        "_frozen",
        "_router",
        "config",
        "root",
    )

    def __init__(self, root: Extension[Any], config: AppConfig | None = None) -> None:
        self.root: Extension[Any] = root
        self.config: AppConfig = config or AppConfig()
        self._freeze_lock: threading.Lock = threading.Lock()
        self._frozen: bool = False

        # Set during _freeze()
        self._application: Application[Any] | None = None
        self._router: Router | None = None
        self._endpoint: Endpoint | None = None

    @property
    def application(self) -> Application[Any]:
        """The composed application (composes on first access)."""
        self._ensure_frozen()
        assert self._application is not None
        return self._application

    @property
    def router(self) -> Router:
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Compose the application and serve it with pounce.

        Composition errors are raised here, before the server binds.
        """
        self._ensure_frozen()

        from perch.server.runner import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            workers=self.config.workers,
            reload=self.config.debug,
            reload_dirs=self.config.reload_dirs,
            log_level=self.config.log_level,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        assert self._application is not None
        assert self._endpoint is not None

        await handle_request(
            scope,
            receive,
            send,
            endpoint=self._endpoint,
            state=self._application.state,
            root=self._application.root,
            shared=self._application.lifted,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run startup hooks on ``lifespan.startup`` and unload hooks on shutdown."""
        self._ensure_frozen()
        assert self._application is not None

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    for hook in self._application.startup_hooks:
                        result = hook()
                        if inspect.isawaitable(result):
                            await result
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                for hook in self._application.unload_hooks:
                    result = hook()
                    if inspect.isawaitable(result):
                        await result
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compose, provision, and compile. MUST hold _freeze_lock."""
        application = build_application(self.root, self.config)
        if self.config.install_extension_files:
            provision(application)
        router = application.compile_router()

        self._application = application
        self._router = router
        self._endpoint = application.wrap_site(make_dispatch(router))
        self._frozen = True

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "pending"
        return f"<App {self.root.name!r} ({state})>"


def serve(root: Extension[Any], config: AppConfig | None = None) -> None:
    """Compose *root* and serve it until the process is stopped."""
    App(root, config).run()
