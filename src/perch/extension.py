"""Extension descriptors and their runtime metadata.

An ``Extension`` is the static description of a nestable unit of
application state: a default name, a human description, an optional
directory of default assets, and the initializer that builds its state.
Descriptors are created once at import time and consumed by ``mount``.

``ExtensionInfo`` is what an extension learns about itself once it is
mounted: where it sits in the tree, the URL prefix its routes live under,
and the directory its files are installed into.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from perch.errors import ConfigurationError
from perch.handle import Handle

if TYPE_CHECKING:
    from perch.initializer import Initializer


@dataclass(frozen=True, slots=True)
class Extension[T]:
    """A named, nestable unit of application state.

    ``initializer`` receives the ``Initializer`` for this mount and returns
    the extension's state value. ``data_dir`` points at the default assets
    (templates, config files) shipped with the extension; they are copied
    into the application directory on first startup.
    """

    name: str
    description: str
    initializer: Callable[[Initializer], T]
    data_dir: str | Path | None = None

    def __post_init__(self) -> None:
        _check_name(self.name)


def make_extension[T](
    name: str,
    description: str,
    data_dir: str | Path | None,
    initializer: Callable[[Initializer], T],
) -> Extension[T]:
    """Build an extension descriptor."""
    return Extension(name, description, initializer, data_dir)


def name_extension[T](extension: Extension[T], name: str) -> Extension[T]:
    """Return a copy of *extension* with its effective name overridden.

    Required when mounting two instances of the same extension kind under
    one parent, so that their identity and file paths do not collide::

        ctx.mount("left", attr("left"), name_extension(counter(), "left"))
        ctx.mount("right", attr("right"), name_extension(counter(), "right"))
    """
    return replace(extension, name=name)


def extension(
    name: str,
    *,
    description: str = "",
    data_dir: str | Path | None = None,
) -> Callable[[Callable[[Initializer], Any]], Extension[Any]]:
    """Turn an initializer function into an extension descriptor.

    Usage::

        @extension("blog", description="Posts and feeds")
        def blog(ctx: Initializer) -> Blog:
            ctx.add_routes([("/", list_posts)])
            return Blog(posts=())
    """

    def decorator(func: Callable[[Initializer], Any]) -> Extension[Any]:
        return Extension(name, description or (func.__doc__ or "").strip(), func, data_dir)

    return decorator


def _check_name(name: str) -> None:
    if not name:
        msg = "Extension name must not be empty."
        raise ConfigurationError(msg)
    if "/" in name or "." in name:
        msg = f"Extension name {name!r} must not contain '/' or '.'."
        raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class ExtensionInfo:
    """Runtime metadata for a mounted extension.

    ``handle`` locates this extension's state inside the root state;
    ``prefixes`` is the namespace prefix stack at mount time (root first,
    empty segments included so the mount shape is preserved).
    """

    name: str
    description: str
    ancestry: tuple[str, ...]
    prefixes: tuple[str, ...]
    file_path: Path
    handle: Handle[Any, Any]
    data_dir: Path | None = None

    @property
    def path(self) -> tuple[str, ...]:
        """Names from the root extension down to this one."""
        return (*self.ancestry, self.name)

    @property
    def qualified_name(self) -> str:
        """Dotted path of names, e.g. ``"site.blog.comments"``."""
        return ".".join(self.path)

    @property
    def root_url(self) -> str:
        """The URL prefix every route of this extension is mounted under."""
        return join_path(self.prefixes, "")

    @property
    def is_root(self) -> bool:
        return not self.ancestry


def normalize_segment(prefix: str) -> str:
    """Strip surrounding slashes from a mount prefix (``"/foo/"`` -> ``"foo"``)."""
    return "/".join(part for part in prefix.split("/") if part)


def join_path(prefixes: tuple[str, ...], pattern: str) -> str:
    """Join mount prefixes and a route pattern into a full path.

    Empty segments are dropped::

        join_path(("", "foo", ""), "/name")  -> "/foo/name"
        join_path((), "/")                   -> "/"
    """
    parts = [seg for prefix in prefixes for seg in prefix.split("/") if seg]
    parts.extend(seg for seg in pattern.split("/") if seg)
    return "/" + "/".join(parts)
