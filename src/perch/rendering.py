"""Kida template rendering as an extension.

``renderer_extension()`` builds a kida ``Environment`` once at composition
time and wraps it in a ``Renderer``. A root state that exposes where the
renderer lives (``HasRenderer``) lets any handler, in any extension,
render without knowing the mount layout::

    @dataclass(frozen=True)
    class Site:
        renderer: Renderer
        blog: Blog

        @property
        def renderer_handle(self) -> Handle[Site, Renderer]:
            return attr("renderer")

    @extension("site")
    def site(ctx: Initializer) -> Site:
        renderer = ctx.mount("", attr("renderer"), renderer_extension())
        ...

    # inside any handler
    return render("post.html", post=post)
"""

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from kida import Environment, FileSystemLoader

from perch.errors import ConfigurationError
from perch.extension import Extension, make_extension
from perch.handle import Handle
from perch.http.response import Response
from perch.initializer import Initializer
from perch.shared import Shared
from perch.state import root_state


class Renderer(Shared):
    """A compiled kida environment, shared by reference across requests."""

    __slots__ = ("env",)

    def __init__(self, env: Environment) -> None:
        self.env = env

    def render(self, name: str, /, **context: Any) -> str:
        """Render template *name* to a string."""
        return self.env.get_template(name).render(context)

    def __repr__(self) -> str:
        return f"Renderer({self.env!r})"


@runtime_checkable
class HasRenderer(Protocol):
    """A root state that knows where its renderer is mounted."""

    @property
    def renderer_handle(self) -> Handle[Any, Renderer]: ...


def renderer_extension(
    template_dir: str | Path | None = None,
    *,
    name: str = "renderer",
    loader: Any = None,
    filters: Mapping[str, Callable[..., Any]] | None = None,
    globals_: Mapping[str, Any] | None = None,
) -> Extension[Renderer]:
    """An extension whose state is a ``Renderer``.

    Templates load from *loader* if given, else from *template_dir*, else
    from ``AppConfig.template_dir``, else from a ``templates`` directory
    in the extension's own file path.
    """

    def initialize(ctx: Initializer) -> Renderer:
        source = loader
        if source is None:
            directory = template_dir or ctx.config.template_dir or ctx.file_path / "templates"
            source = FileSystemLoader(str(directory))
        env = Environment(
            loader=source,
            autoescape=ctx.config.autoescape,
            auto_reload=ctx.config.debug,
        )
        if filters:
            env.update_filters(dict(filters))
        for key, value in (globals_ or {}).items():
            env.add_global(key, value)
        return Renderer(env)

    return make_extension(name, "Kida template renderer", None, initialize)


def render(name: str, /, **context: Any) -> Response:
    """Render template *name* with the application's renderer.

    Must be called while handling a request. Raises ``ConfigurationError``
    when the root state does not implement ``HasRenderer``.
    """
    state = root_state().get()
    if not isinstance(state, HasRenderer):
        msg = (
            f"render({name!r}) needs a root state with a 'renderer_handle' property; "
            f"got {type(state).__name__}."
        )
        raise ConfigurationError(msg)
    renderer = state.renderer_handle.get(state)
    return Response(body=renderer.render(name, **context))
