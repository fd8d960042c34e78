"""Type aliases shared across perch modules. Users never see these."""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

# Raw ASGI
Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]

# Route handler as registered: any signature, sync or async
Handler: TypeAlias = Callable[..., Any]

# Normalized handler: Request in, Response out, always async
Endpoint: TypeAlias = Callable[[Any], Awaitable[Any]]

# Endpoint decorator registered with ``Initializer.wrap_handlers``
Transform: TypeAlias = Callable[[Endpoint], Endpoint]

# Startup or unload hook: no arguments, sync or async
Hook: TypeAlias = Callable[[], Any]
