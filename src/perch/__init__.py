"""perch: compose web applications from named, nestable extensions.

Each extension owns a slice of the application state, a set of routes
under a URL prefix, and optionally child extensions of its own. Handlers
read and update their extension's slice through a request-scoped view::

    from dataclasses import dataclass, replace
    from perch import App, attr, current_state, extension

    @dataclass(frozen=True)
    class Counter:
        hits: int = 0

    @extension("counter")
    def counter(ctx):
        def hit():
            view = current_state()
            return str(view.modify(lambda c: replace(c, hits=c.hits + 1)).hits)

        ctx.add_routes([("/hit", hit)])
        return Counter()

    @dataclass(frozen=True)
    class Site:
        counter: Counter

    @extension("site")
    def site(ctx):
        return Site(counter=ctx.mount("counter", attr("counter"), counter))

    app = App(site)
"""

# Imported eagerly: the name is shared with the perch.extension submodule,
# which would otherwise shadow it once imported.
from perch.extension import extension

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "Application",
    "CompositionError",
    "ConfigurationError",
    "Extension",
    "ExtensionInfo",
    "HTTPError",
    "Handle",
    "HandleMismatch",
    "HasRenderer",
    "Initializer",
    "InitializerFailure",
    "MISSING",
    "MethodNotAllowed",
    "Middleware",
    "MissingHandleTarget",
    "NameCollision",
    "Next",
    "NotFound",
    "PerchError",
    "PrefixCollision",
    "Renderer",
    "Request",
    "Response",
    "RouteCollision",
    "RouteEntry",
    "SharedCell",
    "StateView",
    "attr",
    "build_application",
    "current_extension",
    "current_state",
    "extension",
    "identity",
    "key",
    "make_extension",
    "name_extension",
    "provision",
    "render",
    "renderer_extension",
    "root_state",
    "serve",
]

_LAZY_IMPORTS: dict[str, str] = {
    "App": "perch.app",
    "serve": "perch.app",
    "AppConfig": "perch.config",
    "Application": "perch.compose",
    "build_application": "perch.compose",
    "CompositionError": "perch.errors",
    "ConfigurationError": "perch.errors",
    "HTTPError": "perch.errors",
    "HandleMismatch": "perch.errors",
    "InitializerFailure": "perch.errors",
    "MethodNotAllowed": "perch.errors",
    "MissingHandleTarget": "perch.errors",
    "NameCollision": "perch.errors",
    "NotFound": "perch.errors",
    "PerchError": "perch.errors",
    "PrefixCollision": "perch.errors",
    "RouteCollision": "perch.errors",
    "Extension": "perch.extension",
    "ExtensionInfo": "perch.extension",
    "make_extension": "perch.extension",
    "name_extension": "perch.extension",
    "Handle": "perch.handle",
    "MISSING": "perch.handle",
    "attr": "perch.handle",
    "identity": "perch.handle",
    "key": "perch.handle",
    "Initializer": "perch.initializer",
    "Middleware": "perch.middleware.protocol",
    "Next": "perch.middleware.protocol",
    "Request": "perch.http.request",
    "Response": "perch.http.response",
    "RouteEntry": "perch.routing.route",
    "provision": "perch.provisioning",
    "HasRenderer": "perch.rendering",
    "Renderer": "perch.rendering",
    "render": "perch.rendering",
    "renderer_extension": "perch.rendering",
    "SharedCell": "perch.shared",
    "StateView": "perch.state",
    "current_extension": "perch.state",
    "current_state": "perch.state",
    "root_state": "perch.state",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        msg = f"module 'perch' has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    return getattr(importlib.import_module(module_name), name)
