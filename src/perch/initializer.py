"""The initializer context passed to every extension's initializer.

One ``Initializer`` exists per mount (the root included). While the
extension's initializer runs it can register routes, wrap handlers, mount
child extensions, and register hooks. Once the initializer returns the
context is closed: any further registration raises ``RuntimeError``.

Usage::

    @extension("blog", description="Posts")
    def blog(ctx: Initializer) -> Blog:
        comments_state = ctx.mount("comments", attr("comments"), comments())

        @ctx.route("/posts/{id:int}")
        def show(id: int, state: StateView[Blog]):
            return state.get().posts[id]

        ctx.add_middleware(require_login)
        return Blog(posts=load_posts(ctx.file_path), comments=comments_state)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from perch._internal.types import Handler, Hook, Transform
from perch.errors import NameCollision, PrefixCollision
from perch.extension import Extension, ExtensionInfo, normalize_segment
from perch.handle import Handle
from perch.middleware.protocol import Middleware, as_transform
from perch.routing.route import RouteEntry

if TYPE_CHECKING:
    from perch.config import AppConfig

logger = logging.getLogger("perch.compose")


@dataclass(frozen=True, slots=True)
class Mounted:
    """A child mount recorded by its parent, in registration order."""

    prefix: str
    handle: Handle[Any, Any]
    context: Initializer
    state: Any


class Initializer:
    """Builder for one extension while its initializer runs.

    Accumulates route entries, handler transforms, child mounts and hooks.
    The composition builder reads them back when flattening.
    """

    __slots__ = (
        "_closed",
        "_entries",
        "_lifted",
        "_post_init_hooks",
        "_startup_hooks",
        "_unload_hooks",
        "_wrappers",
        "config",
        "info",
    )

    def __init__(self, info: ExtensionInfo, config: AppConfig) -> None:
        self.info: ExtensionInfo = info
        self.config: AppConfig = config
        # Routes and child mounts, interleaved in registration order
        self._entries: list[RouteEntry | Mounted] = []
        self._wrappers: list[Transform] = []
        self._lifted: list[Any] = []
        self._post_init_hooks: list[Callable[[Any], Any]] = []
        self._startup_hooks: list[Hook] = []
        self._unload_hooks: list[Hook] = []
        self._closed: bool = False

    # -- Metadata --

    @property
    def prefixes(self) -> tuple[str, ...]:
        """The namespace prefix stack, root first."""
        return self.info.prefixes

    @property
    def root_url(self) -> str:
        return self.info.root_url

    @property
    def file_path(self) -> Path:
        """Directory holding this extension's installed files."""
        return self.info.file_path

    # -- Route registration --

    def add_routes(self, entries: Iterable[RouteEntry | tuple[Any, ...]]) -> None:
        """Register routes relative to this extension's prefix.

        Entries are ``RouteEntry`` objects or ``(path, handler)`` /
        ``(path, handler, methods)`` tuples. Order is preserved.
        """
        self._check_open()
        self._entries.extend(RouteEntry.coerce(entry) for entry in entries)

    def route(
        self,
        path: str,
        *,
        methods: Iterable[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator. Methods default to ``GET``."""

        def decorator(func: Handler) -> Handler:
            self._check_open()
            self._entries.append(
                RouteEntry(path, func, tuple(methods) if methods else None, name)
            )
            return func

        return decorator

    @property
    def routes(self) -> tuple[RouteEntry, ...]:
        """Routes registered directly on this context (not children's)."""
        return tuple(entry for entry in self._entries if isinstance(entry, RouteEntry))

    # -- Handler wrapping --

    def wrap_handlers(self, transform: Transform) -> None:
        """Wrap every route of this extension's subtree with *transform*.

        ``transform`` takes an endpoint (``async (Request) -> Response``)
        and returns one. The first transform registered is the outermost.
        On the root extension the transforms wrap the whole dispatch,
        including requests no route matches.
        """
        self._check_open()
        self._wrappers.append(transform)

    def add_middleware(self, middleware: Middleware) -> None:
        """Wrap this subtree with an ``async mw(request, next)`` middleware."""
        self.wrap_handlers(as_transform(middleware))

    # -- External actions --

    def lift_external[R](self, action: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Run a one-shot side-effecting action during initialization.

        Use it to allocate resources every request should see, such as a
        lock-guarded cell or a connection pool. The result is recorded so request
        snapshots keep it by reference instead of copying it; the resource
        does its own synchronization.
        """
        self._check_open()
        result = action(*args, **kwargs)
        self._lifted.append(result)
        return result

    # -- Hooks --

    def add_post_init_hook(self, hook: Callable[[Any], Any]) -> None:
        """Transform this extension's state right after its initializer returns.

        Hooks run in registration order; each receives the previous
        hook's result. Raising aborts the composition.
        """
        self._check_open()
        self._post_init_hooks.append(hook)

    def on_startup(self, hook: Hook) -> Hook:
        """Register a sync or async hook run when the server starts.

        Child extensions' startup hooks run before their parent's.
        """
        self._check_open()
        self._startup_hooks.append(hook)
        return hook

    def on_unload(self, hook: Hook) -> Hook:
        """Register a sync or async hook run when the server shuts down.

        Unload hooks run in the reverse of startup order: a parent's
        before its children's, and later registrations first.
        """
        self._check_open()
        self._unload_hooks.append(hook)
        return hook

    # -- Nesting --

    def mount[T](self, prefix: str, handle: Handle[Any, T], extension: Extension[T]) -> T:
        """Nest *extension* under this one and return the state it produced.

        *prefix* is prepended to every route registered in the child's
        subtree (``""`` mounts at this extension's own prefix). *handle*
        says where in this extension's state the returned value will be
        stored; the caller stores it there.

        Raises ``NameCollision`` or ``PrefixCollision`` when a sibling
        already uses the name or the non-empty prefix, and
        ``InitializerFailure`` when the child's initializer raises.
        """
        from perch.compose import run_initializer

        self._check_open()
        segment = normalize_segment(prefix)
        for sibling in self._mounts():
            if sibling.context.info.name == extension.name:
                raise NameCollision(self.info.qualified_name, extension.name)
            if segment and sibling.prefix == segment:
                raise PrefixCollision(
                    self.info.qualified_name,
                    segment,
                    (sibling.context.info.name, extension.name),
                )

        child = Initializer(self._child_info(segment, handle, extension), self.config)
        logger.debug(
            "Mounting %s at %r (handle %s)",
            child.info.qualified_name,
            child.info.root_url,
            child.info.handle.name or "<root>",
        )
        state = run_initializer(child, extension)
        self._entries.append(Mounted(segment, handle, child, state))
        return state

    def _child_info(self, segment: str, handle: Handle[Any, Any], extension: Extension[Any]) -> ExtensionInfo:
        return ExtensionInfo(
            name=extension.name,
            description=extension.description,
            ancestry=self.info.path,
            prefixes=(*self.info.prefixes, segment),
            file_path=self.info.file_path / self.config.extensions_dir / extension.name,
            handle=self.info.handle.then(handle),
            data_dir=Path(extension.data_dir) if extension.data_dir is not None else None,
        )

    def _mounts(self) -> list[Mounted]:
        return [entry for entry in self._entries if isinstance(entry, Mounted)]

    # -- Internal --

    def _close(self) -> None:
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            msg = (
                f"Cannot modify extension {self.info.qualified_name!r} after its "
                "initializer returned. Register routes, wrappers, hooks, and mounts "
                "while the initializer runs."
            )
            raise RuntimeError(msg)

    def __repr__(self) -> str:
        return f"<Initializer {self.info.qualified_name} at {self.info.root_url!r}>"
