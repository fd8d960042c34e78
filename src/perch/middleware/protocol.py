"""Middleware protocol and its adapter to handler transforms.

``Initializer.wrap_handlers`` takes a transform ``endpoint -> endpoint``.
Most cross-cutting code reads more naturally as a middleware that receives
the request and the next endpoint; ``as_transform`` bridges the two.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from perch._internal.invoke import invoke
from perch._internal.types import Endpoint
from perch.http.request import Request

# The next endpoint in the chain
type Next = Callable[[Request], Awaitable[Any]]


class Middleware(Protocol):
    """Protocol for perch middleware.

    Accepts both functions and callable objects::

        async def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = await next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")
    """

    async def __call__(self, request: Request, next: Next) -> Any: ...


def as_transform(middleware: Middleware) -> Callable[[Endpoint], Endpoint]:
    """Adapt a middleware to a ``wrap_handlers`` transform."""

    def transform(inner: Endpoint) -> Endpoint:
        async def endpoint(request: Request) -> Any:
            return await invoke(middleware, request, inner)

        return endpoint

    return transform
