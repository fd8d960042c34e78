"""ASGI handler: translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts scope dicts to
typed Request objects, opens the per-request state scope, dispatches through
the site wrappers and the router, and sends the Response back.

Also builds route *endpoints*: every handler an extension registers is
normalized into ``async (Request) -> Response`` that runs as its extension.
"""

import inspect
import logging
import traceback
from dataclasses import replace
from typing import Any

from perch._internal.invoke import invoke
from perch._internal.types import Endpoint, Handler, Receive, Scope, Send, Transform
from perch.errors import HTTPError
from perch.extension import ExtensionInfo
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.router import Router
from perch.server.negotiation import negotiate
from perch.server.sender import send_response
from perch.state import StateView, current_extension, current_state, request_scope, running_as

logger = logging.getLogger("perch.server")


# -- Endpoints --


def endpoint_for(handler: Handler, extension: ExtensionInfo) -> Endpoint:
    """Normalize a registered handler into an endpoint running as *extension*.

    The handler's signature is inspected once. Parameters are filled by
    name or annotation:

    1. ``request`` / ``Request``  -> the current request
    2. path parameters            -> converted to the annotated type
    3. ``StateView``              -> ``current_state()``
    4. ``ExtensionInfo``          -> ``current_extension()``
    """
    sig = inspect.signature(handler, eval_str=True)
    params = tuple(sig.parameters.items())

    async def endpoint(request: Request) -> Response:
        with running_as(extension):
            kwargs = _build_handler_kwargs(params, request)
            return negotiate(await invoke(handler, **kwargs))

    endpoint.__qualname__ = getattr(handler, "__qualname__", endpoint.__qualname__)
    return endpoint


def apply_transform(transform: Transform, inner: Endpoint, extension: ExtensionInfo) -> Endpoint:
    """Wrap *inner* with *transform*; the transform's own code runs as *extension*."""
    wrapped = transform(inner)

    async def endpoint(request: Request) -> Response:
        with running_as(extension):
            return negotiate(await invoke(wrapped, request))

    return endpoint


def _build_handler_kwargs(
    params: tuple[tuple[str, inspect.Parameter], ...],
    request: Request,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    for name, param in params:
        annotation = param.annotation
        if name == "request" or annotation is Request:
            kwargs[name] = request
        elif name in request.path_params:
            value = request.path_params[name]
            if annotation in (int, float):
                try:
                    kwargs[name] = annotation(value)
                except ValueError:
                    kwargs[name] = value
            else:
                kwargs[name] = value
        elif annotation is StateView or getattr(annotation, "__origin__", None) is StateView:
            kwargs[name] = current_state()
        elif annotation is ExtensionInfo:
            kwargs[name] = current_extension()
    return kwargs


# -- Request pipeline --


def make_dispatch(router: Router) -> Endpoint:
    """The innermost endpoint: match the route and call its endpoint."""

    async def dispatch(request: Request) -> Response:
        match = router.match(request.method, request.path)
        return await match.route.endpoint(request.with_path_params(match.path_params))

    return dispatch


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    endpoint: Endpoint,
    state: Any,
    root: ExtensionInfo,
    shared: tuple[Any, ...] = (),
    debug: bool = False,
) -> None:
    """Process a single HTTP request through the full pipeline.

    *endpoint* is the router dispatch already wrapped by the root
    extension's transforms; *state* is the application state template the
    request's snapshot is taken from, sharing the objects in *shared*.
    """
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    try:
        with request_scope(state, root, shared):
            response = negotiate(await endpoint(request))
    except HTTPError as exc:
        response = handle_http_error(exc, request)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug=debug)

    if request.method == "HEAD":
        response = replace(response, body=b"")
    await send_response(response, send)


def handle_http_error(exc: HTTPError, request: Request) -> Response:
    """Map an HTTPError to a plain-text response with its status."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
    response = Response(
        body=exc.detail or f"Error {exc.status}",
        status=exc.status,
        content_type="text/plain; charset=utf-8",
    )
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def handle_internal_error(exc: Exception, request: Request, *, debug: bool) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)
    body = "".join(traceback.format_exception(exc)) if debug else "Internal Server Error"
    return Response(body=body, status=500, content_type="text/plain; charset=utf-8")
