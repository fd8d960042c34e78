"""Composition tree builder.

``build_application`` runs the root extension's initializer in a root
context. Every ``mount`` inside it recurses into a child context, so the
whole extension tree is initialized depth-first, in nesting order, before
anything is served. The builder then:

1. checks that each extension's handle locates the state its initializer
   produced,
2. flattens every registered route into one table, prefixing each path
   with the mount segments from the root down and wrapping each endpoint
   with the transforms of its enclosing (non-root) extensions,
3. returns an immutable ``Application``.

The root extension's own transforms are kept apart as ``site_wrappers``:
the dispatcher applies them around routing itself, so they see every
request, including those no route matches.

Any exception during composition aborts it; no partial application is
ever returned.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from perch._internal.types import Endpoint, Handler, Hook, Transform
from perch.config import AppConfig
from perch.errors import (
    CompositionError,
    ConfigurationError,
    HandleMismatch,
    InitializerFailure,
    MissingHandleTarget,
)
from perch.extension import Extension, ExtensionInfo, join_path
from perch.handle import identity
from perch.initializer import Initializer, Mounted
from perch.routing.route import Route, RouteEntry
from perch.routing.router import Router
from perch.server.handler import apply_transform, endpoint_for

logger = logging.getLogger("perch.compose")


@dataclass(frozen=True, slots=True)
class Application[S]:
    """A fully composed application: the state template plus its routes.

    ``state`` is the template every request snapshot is copied from.
    ``routes`` is the flattened route table in depth-first registration
    order; ``extensions`` lists every mounted extension, root first.
    ``lifted`` holds every ``lift_external`` result; request snapshots
    share these by reference.
    """

    state: S
    routes: tuple[Route, ...]
    root: ExtensionInfo
    extensions: tuple[ExtensionInfo, ...]
    site_wrappers: tuple[Transform, ...]
    startup_hooks: tuple[Hook, ...]
    unload_hooks: tuple[Hook, ...]
    config: AppConfig
    lifted: tuple[Any, ...] = ()

    def route_table(self) -> dict[str, Handler]:
        """Map each full path to the handler registered for it.

        A per-path view: routes sharing a path under disjoint methods
        collapse to the last one registered. Use ``routes`` when every
        (path, methods) pair matters.
        """
        return {route.path: route.handler for route in self.routes}

    def compile_router(self) -> Router:
        """Register every route with a fresh router and freeze it.

        Raises ``RouteCollision`` if two flattened routes share a pattern
        and a method.
        """
        router = Router()
        for route in self.routes:
            router.add(route)
        router.compile()
        return router

    def wrap_site(self, endpoint: Endpoint) -> Endpoint:
        """Apply the root extension's transforms around *endpoint*."""
        try:
            for transform in reversed(self.site_wrappers):
                endpoint = apply_transform(transform, endpoint, self.root)
        except Exception as exc:
            raise InitializerFailure(self.root.qualified_name, exc) from exc
        return endpoint

    def extension(self, qualified_name: str) -> ExtensionInfo:
        """Look up a mounted extension by dotted name (for tooling and tests)."""
        for info in self.extensions:
            if info.qualified_name == qualified_name:
                return info
        raise KeyError(qualified_name)


def build_application[S](root: Extension[S], config: AppConfig | None = None) -> Application[S]:
    """Compose *root* and everything it mounts into an ``Application``.

    Raises a ``CompositionError`` subclass on name, prefix, or handle
    problems, and ``InitializerFailure`` when any initializer raises.
    """
    config = config or AppConfig()
    info = ExtensionInfo(
        name=root.name,
        description=root.description,
        ancestry=(),
        prefixes=(),
        file_path=Path(config.app_dir),
        handle=identity(),
        data_dir=Path(root.data_dir) if root.data_dir is not None else None,
    )
    context = Initializer(info, config)

    logger.debug("Composing application %r", root.name)
    state = run_initializer(context, root)
    _verify_handles(state, context)

    contexts = list(_walk(context))
    application = Application(
        state=state,
        routes=tuple(_flatten(context, wrap=False)),
        root=info,
        extensions=tuple(ctx.info for ctx in contexts),
        site_wrappers=tuple(context._wrappers),
        startup_hooks=tuple(
            hook for ctx in _walk_post_order(context) for hook in ctx._startup_hooks
        ),
        unload_hooks=tuple(
            hook
            for ctx in reversed(list(_walk_post_order(context)))
            for hook in reversed(ctx._unload_hooks)
        ),
        config=config,
        lifted=tuple(value for ctx in contexts for value in ctx._lifted),
    )
    logger.info(
        "Composed %r: %d extensions, %d routes",
        root.name,
        len(application.extensions),
        len(application.routes),
    )
    return application


def run_initializer[T](context: Initializer, extension: Extension[T]) -> T:
    """Run *extension*'s initializer and post-init hooks in *context*.

    Closes the context afterwards, whether the initializer succeeded or not.
    """
    try:
        state = extension.initializer(context)
        if inspect.isawaitable(state):
            if inspect.iscoroutine(state):
                state.close()
            msg = (
                f"Initializer for {extension.name!r} returned an awaitable. "
                "Initializers run synchronously; use on_startup() for async setup."
            )
            raise ConfigurationError(msg)
        for hook in context._post_init_hooks:
            state = hook(state)
    except CompositionError:
        raise
    except Exception as exc:
        raise InitializerFailure(context.info.qualified_name, exc) from exc
    finally:
        context._close()
    return state


def _verify_handles(root_state: Any, context: Initializer) -> None:
    for mounted in _mounts(context):
        info = mounted.context.info
        try:
            found = info.handle.project(root_state)
        except MissingHandleTarget as exc:
            detail = f"state of {info.qualified_name!r} was never stored"
            raise MissingHandleTarget(info.handle.name, detail) from exc
        if found is not mounted.state:
            raise HandleMismatch(info.qualified_name, info.handle.name)
        _verify_handles(root_state, mounted.context)


def _flatten(context: Initializer, *, wrap: bool) -> list[Route]:
    routes: list[Route] = []
    for entry in context._entries:
        if isinstance(entry, Mounted):
            routes.extend(_flatten(entry.context, wrap=True))
        else:
            routes.append(_route(context.info, entry))

    if wrap and context._wrappers:
        routes = [replace(route, endpoint=_wrap(context, route.endpoint)) for route in routes]
    return routes


def _route(info: ExtensionInfo, entry: RouteEntry) -> Route:
    # Signature inspection resolves annotations, which can fail for names
    # only imported under TYPE_CHECKING
    try:
        endpoint = endpoint_for(entry.handler, info)
    except Exception as exc:
        raise InitializerFailure(info.qualified_name, exc) from exc
    return Route(
        path=join_path(info.prefixes, entry.path),
        handler=entry.handler,
        methods=frozenset(m.upper() for m in entry.methods or ("GET",)),
        extension=info,
        endpoint=endpoint,
        name=entry.name,
    )


def _wrap(context: Initializer, endpoint: Endpoint) -> Endpoint:
    # First registered transform ends up outermost
    try:
        for transform in reversed(context._wrappers):
            endpoint = apply_transform(transform, endpoint, context.info)
    except Exception as exc:
        raise InitializerFailure(context.info.qualified_name, exc) from exc
    return endpoint


def _mounts(context: Initializer) -> list[Mounted]:
    return [entry for entry in context._entries if isinstance(entry, Mounted)]


def _walk(context: Initializer) -> Iterator[Initializer]:
    """Pre-order: parent before its children."""
    yield context
    for mounted in _mounts(context):
        yield from _walk(mounted.context)


def _walk_post_order(context: Initializer) -> Iterator[Initializer]:
    """Post-order: children before their parent."""
    for mounted in _mounts(context):
        yield from _walk_post_order(mounted.context)
    yield context
