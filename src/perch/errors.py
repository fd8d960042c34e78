"""Perch exception hierarchy.

Shared across the composition builder, the router, and the request
pipeline so every module raises and catches the same types.
"""

from collections.abc import Iterable
from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when an extension or app configuration is invalid."""


# -- Composition --


class CompositionError(PerchError):
    """Base for errors raised while assembling the extension tree.

    Always fatal: composition runs once, before any request is served,
    so these propagate to the process entry point and stop startup.
    """


class NameCollision(CompositionError):
    """Two sibling extensions resolve to the same effective name."""

    def __init__(self, parent: str, name: str) -> None:
        self.parent = parent
        self.name = name
        super().__init__(
            f"Extension {parent!r} already has a child named {name!r}. "
            "Use name_extension() to give the second instance its own name."
        )


class PrefixCollision(CompositionError):
    """Two sibling mounts request the same non-empty prefix."""

    def __init__(self, parent: str, prefix: str, names: tuple[str, str]) -> None:
        self.parent = parent
        self.prefix = prefix
        self.names = names
        super().__init__(
            f"Extensions {names[0]!r} and {names[1]!r} are both mounted at "
            f"prefix {prefix!r} under {parent!r}."
        )


class RouteCollision(CompositionError):
    """Two flattened routes share an identical pattern and method."""

    def __init__(self, path: str, methods: Iterable[str]) -> None:
        self.path = path
        self.methods = frozenset(methods)
        super().__init__(
            f"Route {path!r} is registered more than once for "
            f"{', '.join(sorted(self.methods))}."
        )


class InitializerFailure(CompositionError):
    """An extension's initializer raised; the whole composition is aborted.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, extension: str, cause: BaseException) -> None:
        self.extension = extension
        super().__init__(f"Initializer for {extension!r} failed: {cause!r}")


class MissingHandleTarget(CompositionError):
    """A handle was projected against a slot that was never populated."""

    def __init__(self, handle: str, detail: str = "") -> None:
        self.handle = handle
        message = f"Handle {handle!r} points at an unpopulated slot"
        super().__init__(f"{message}: {detail}" if detail else message)


class HandleMismatch(CompositionError):
    """A handle does not locate the value its extension's initializer produced."""

    def __init__(self, extension: str, handle: str) -> None:
        self.extension = extension
        self.handle = handle
        super().__init__(
            f"Handle {handle!r} does not locate the state produced by "
            f"{extension!r}. Store the value returned by mount() in the slot "
            "the handle points at."
        )


# -- HTTP --


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router or by handlers. The ASGI pipeline turns it into
    a response with the matching status.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method."""

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            detail=detail or f"Method not allowed. Allowed methods: {allow_value}",
            headers=(("Allow", allow_value),),
        )
