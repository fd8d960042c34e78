"""Compiled router with trie-based path matching.

This is the dispatcher's registration step: flattened routes from every
mounted extension are added here once, at startup. Two routes with the
same normalized pattern and an overlapping method fail registration with
``RouteCollision``; nothing is silently overwritten.
"""

import re
from dataclasses import dataclass, field

from perch.errors import ConfigurationError, MethodNotAllowed, NotFound, RouteCollision
from perch.routing.route import PathSegment, Route, RouteMatch

# (regex_pattern, python_type) for each supported converter
CONVERTERS: dict[str, tuple[str, type]] = {
    "str": (r"[^/]+", str),
    "int": (r"\d+", int),
    "float": (r"\d+(?:\.\d+)?", float),
    "path": (r".+", str),
}

_FLASK_PARAM = re.compile(r"<[^>]*>")


def convert_param(value: str, param_type: str) -> str | int | float:
    """Convert a captured path parameter to its declared type.

    Raises ``ValueError`` if the string cannot be converted.
    """
    _, target_type = CONVERTERS[param_type]
    return target_type(value)


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/{id:int}"    -> [..., PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{rest:path}" -> [..., PathSegment("{rest:path}", is_param=True, param_type="path")]
    """
    if _FLASK_PARAM.search(path):
        msg = f"Route {path!r} uses <param> syntax; perch expects {{param}}."
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if part.startswith("{") and part.endswith("}"):
            param_name, _, param_type = part[1:-1].partition(":")
            param_type = param_type or "str"
            if param_type not in CONVERTERS:
                msg = f"Unknown converter {param_type!r} in route {path!r}."
                raise ConfigurationError(msg)
            segments.append(
                PathSegment(
                    value=part,
                    is_param=True,
                    param_name=param_name,
                    param_type=param_type,
                )
            )
        else:
            segments.append(PathSegment(value=part))
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during registration only."""

    __slots__ = ("catch_all", "children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        self.param_child: _ParamEdge | None = None
        self.catch_all: _CatchAllEdge | None = None
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """Consumes the remainder of the path."""

    param_name: str
    routes_by_method: dict[str, Route] = field(default_factory=dict)


class Router:
    """Trie router over a flattened route table.

    Usage::

        router = Router()
        for route in application.routes:
            router.add(route)
        router.compile()
        match = router.match("GET", "/blog/posts/42")
    """

    __slots__ = ("_compiled", "_root", "_routes")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._routes: list[Route] = []
        self._compiled = False

    def add(self, route: Route) -> None:
        """Register a route. Must be called before ``compile()``.

        Raises ``RouteCollision`` if an identical pattern is already
        registered for any of the route's methods.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        for seg in parse_path(route.path):
            if seg.is_param and seg.param_type == "path":
                if node.catch_all is None:
                    node.catch_all = _CatchAllEdge(param_name=seg.param_name or "path")
                self._register(node.catch_all.routes_by_method, route)
                return

            if seg.is_param:
                node = self._param_node(node, seg, route.path)
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        self._register(node.routes_by_method, route)

    def _param_node(self, node: _TrieNode, seg: PathSegment, path: str) -> _TrieNode:
        edge = node.param_child
        if edge is None:
            pattern, _ = CONVERTERS[seg.param_type]
            edge = _ParamEdge(
                param_name=seg.param_name or "",
                param_type=seg.param_type,
                regex=re.compile(f"^{pattern}$"),
                node=_TrieNode(),
            )
            node.param_child = edge
        elif (edge.param_name, edge.param_type) != (seg.param_name, seg.param_type):
            msg = (
                f"Route {path!r} declares {seg.value} where another route declares "
                f"{{{edge.param_name}:{edge.param_type}}} at the same position."
            )
            raise ConfigurationError(msg)
        return edge.node

    def _register(self, routes_by_method: dict[str, Route], route: Route) -> None:
        clashing = route.methods.intersection(routes_by_method)
        if clashing:
            raise RouteCollision(route.path, clashing)
        for method in route.methods:
            routes_by_method[method] = route
        self._routes.append(route)

    @property
    def routes(self) -> list[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against registered routes.

        Raises ``NotFound`` if no route matches the path and
        ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        result = self._match_node(self._root, parts, 0, {})
        if result is None:
            raise NotFound(f"No route matches {method} {path!r}")

        routes_by_method, params = result
        if method in routes_by_method:
            return RouteMatch(route=routes_by_method[method], path_params=params)
        if method == "HEAD" and "GET" in routes_by_method:
            return RouteMatch(route=routes_by_method["GET"], path_params=params)
        raise MethodNotAllowed(frozenset(routes_by_method))

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[dict[str, Route], dict[str, str]] | None:
        if index == len(parts):
            if node.routes_by_method:
                return node.routes_by_method, params
            return None

        part = parts[index]

        # Static children win over parameters, parameters over catch-alls
        if part in node.children:
            result = self._match_node(node.children[part], parts, index + 1, params)
            if result is not None:
                return result

        edge = node.param_child
        if edge is not None and edge.regex.match(part):
            result = self._match_node(
                edge.node, parts, index + 1, {**params, edge.param_name: part}
            )
            if result is not None:
                return result

        if node.catch_all is not None:
            remaining = "/".join(parts[index:])
            return (
                node.catch_all.routes_by_method,
                {**params, node.catch_all.param_name: remaining},
            )

        return None
