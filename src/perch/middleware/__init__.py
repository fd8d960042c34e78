"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching::

    async def mw(request: Request, next: Next) -> Response

Register one on an extension with ``ctx.add_middleware(mw)``; it wraps
only the routes mounted under that extension.
"""

from perch.middleware.protocol import Middleware, Next, as_transform

__all__ = ["Middleware", "Next", "as_transform"]
