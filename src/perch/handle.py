"""Handles: get/set accessor pairs into an ancestor's state tree.

A handle never owns the value it points at. It only knows how to
*project* an extension's state out of an ancestor state and how to
*inject* a replacement, returning a new ancestor state::

    @dataclass(frozen=True)
    class Site:
        blog: Blog = MISSING
        counter: Counter = MISSING

    blog = attr("blog")
    blog.project(site)                 # -> site.blog
    blog.inject(site, new_blog)        # -> Site(blog=new_blog, counter=...)

Handles satisfy the round-trip laws::

    h.project(h.inject(s, v)) == v
    h.inject(s, h.project(s)) == s

and compose with ``then``: ``attr("blog").then(attr("posts"))`` reaches
``site.blog.posts``.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from perch.errors import MissingHandleTarget


class _Missing:
    """Sentinel type for state slots that have not been populated yet."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Any = _Missing()
"""Default for state fields an extension will fill in at mount time."""


@dataclass(frozen=True, slots=True)
class Handle[S, T]:
    """A non-owning reference to one slot of an ancestor state.

    ``project`` reads the slot, ``inject`` returns a new ancestor state
    with the slot replaced. Both must be pure.
    """

    project: Callable[[S], T]
    inject: Callable[[S, T], S]
    name: str = "<handle>"

    def get(self, state: S) -> T:
        """Alias for ``project``."""
        return self.project(state)

    def set(self, state: S, value: T) -> S:
        """Alias for ``inject``."""
        return self.inject(state, value)

    def modify(self, state: S, fn: Callable[[T], T]) -> S:
        """Return *state* with the slot replaced by ``fn(old_value)``."""
        return self.inject(state, fn(self.project(state)))

    def then[U](self, inner: Handle[T, U]) -> Handle[S, U]:
        """Compose with a handle that points inside this handle's target."""
        outer = self

        def project(state: S) -> U:
            return inner.project(outer.project(state))

        def inject(state: S, value: U) -> S:
            return outer.inject(state, inner.inject(outer.project(state), value))

        return Handle(project, inject, name=_join_names(outer.name, inner.name))

    def __repr__(self) -> str:
        return f"Handle({self.name})"


def identity() -> Handle[Any, Any]:
    """The handle from a state to itself. Used for the root extension."""
    return Handle(lambda state: state, lambda _state, value: value, name="")


def attr(name: str) -> Handle[Any, Any]:
    """Handle to an attribute of a dataclass or plain object.

    Dataclasses (frozen or not) are updated with ``dataclasses.replace``;
    other objects are shallow-copied before the attribute is set, so the
    original value is never mutated.
    """

    def project(state: Any) -> Any:
        try:
            value = getattr(state, name)
        except AttributeError:
            detail = f"{type(state).__name__} has no attribute {name!r}"
            raise MissingHandleTarget(name, detail) from None
        if value is MISSING:
            raise MissingHandleTarget(name, f"{type(state).__name__}.{name} is MISSING")
        return value

    def inject(state: Any, value: Any) -> Any:
        if dataclasses.is_dataclass(state) and not isinstance(state, type):
            return dataclasses.replace(state, **{name: value})
        updated = copy.copy(state)
        setattr(updated, name, value)
        return updated

    return Handle(project, inject, name=name)


def key(name: str) -> Handle[Mapping[str, Any], Any]:
    """Handle to one item of a mapping. Injecting returns a new ``dict``."""

    def project(state: Mapping[str, Any]) -> Any:
        try:
            value = state[name]
        except KeyError:
            raise MissingHandleTarget(name, f"no key {name!r}") from None
        if value is MISSING:
            raise MissingHandleTarget(name, f"key {name!r} is MISSING")
        return value

    def inject(state: Mapping[str, Any], value: Any) -> dict[str, Any]:
        return {**state, name: value}

    return Handle(project, inject, name=f"[{name}]")


def _join_names(outer: str, inner: str) -> str:
    if not outer:
        return inner
    if not inner:
        return outer
    if inner.startswith("["):
        return f"{outer}{inner}"
    return f"{outer}.{inner}"
