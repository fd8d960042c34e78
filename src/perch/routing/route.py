"""Route entries, flattened routes, and match results."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from perch._internal.types import Endpoint, Handler

if TYPE_CHECKING:
    from perch.extension import ExtensionInfo


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``  (is_param=False)
    Param:   ``/{id}``   (is_param=True, param_name="id")
    Typed:   ``/{id:int}`` (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class RouteEntry:
    """A route as an initializer registers it: pattern relative to its mount."""

    path: str
    handler: Handler
    methods: tuple[str, ...] | None = None
    name: str | None = None

    @classmethod
    def coerce(cls, entry: RouteEntry | tuple[Any, ...]) -> RouteEntry:
        """Accept ``RouteEntry`` or ``(path, handler[, methods])`` tuples."""
        match entry:
            case RouteEntry():
                return entry
            case (str() as path, handler):
                return cls(path, handler)
            case (str() as path, handler, methods):
                return cls(path, handler, _method_tuple(methods))
            case _:
                msg = f"Cannot interpret {entry!r} as a route entry; expected (path, handler)."
                raise TypeError(msg)


def _method_tuple(methods: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(methods, str):
        return (methods,)
    return tuple(methods)


@dataclass(frozen=True, slots=True)
class Route:
    """A flattened route. Immutable once the application is built.

    ``path`` is the fully prefixed path, ``handler`` the function the
    extension registered, ``endpoint`` the normalized async callable with
    every enclosing ``wrap_handlers`` transform applied, and ``extension``
    the mount the route was registered under.
    """

    path: str
    handler: Handler
    methods: frozenset[str]
    extension: ExtensionInfo
    endpoint: Endpoint
    name: str | None = None

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", None) or repr(self.handler)


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]
