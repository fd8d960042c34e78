"""Request-scoped access to extension state.

Each request gets a ``RequestState``: a private snapshot of the application
state tree, taken lazily (deep copy) on first access and discarded when the
response is sent. Handlers see only the slice owned by the extension that
registered the matched route::

    def increment():
        view = current_state()          # this extension's slice
        view.modify(lambda s: replace(s, visits=s.visits + 1))
        return str(view.get().visits)   # visible for the rest of this request

Values deriving from ``perch.shared.Shared`` and values created with
``Initializer.lift_external`` are not copied: they are shared by every
request and are the one way to keep a change past the response.

Thread safety:
    Both context variables are task-local under asyncio and thread-local
    under free-threading. No locks needed.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from perch.extension import ExtensionInfo
from perch.handle import Handle, identity

_UNTAKEN: Any = object()


class RequestState:
    """The per-request snapshot of the application state tree.

    Holds a reference to the immutable template until something reads it;
    only then is the deep copy made, so requests that never touch state
    pay nothing. Objects in *shared* are kept by reference in the copy.
    """

    __slots__ = ("_shared", "_snapshot", "_template")

    def __init__(self, template: Any, shared: Iterable[Any] = ()) -> None:
        self._template = template
        self._shared = tuple(shared)
        self._snapshot = _UNTAKEN

    @property
    def root(self) -> Any:
        if self._snapshot is _UNTAKEN:
            memo: dict[int, Any] = {id(value): value for value in self._shared}
            self._snapshot = copy.deepcopy(self._template, memo)
        return self._snapshot

    @root.setter
    def root(self, value: Any) -> None:
        self._snapshot = value

    @property
    def taken(self) -> bool:
        """True once the snapshot has been copied from the template."""
        return self._snapshot is not _UNTAKEN


class StateView[T]:
    """Read/modify/write view of one extension's slice of a request snapshot."""

    __slots__ = ("_handle", "_state")

    def __init__(self, state: RequestState, handle: Handle[Any, T]) -> None:
        self._state = state
        self._handle = handle

    @property
    def handle(self) -> Handle[Any, T]:
        """Root-relative handle this view reads through."""
        return self._handle

    def get(self) -> T:
        return self._handle.project(self._state.root)

    def put(self, value: T) -> None:
        self._state.root = self._handle.inject(self._state.root, value)

    def modify(self, fn: Callable[[T], T]) -> T:
        """Replace the slice with ``fn(slice)`` and return the new value."""
        value = fn(self.get())
        self.put(value)
        return value

    def focus[U](self, handle: Handle[T, U]) -> StateView[U]:
        """View of a descendant extension, given its handle relative to this one."""
        return StateView(self._state, self._handle.then(handle))

    def __repr__(self) -> str:
        return f"StateView({self._handle.name or '<root>'})"


# -- Request context --

state_var: ContextVar[RequestState] = ContextVar("perch_state")
"""The current request's snapshot. Set by the dispatcher for each request."""

extension_var: ContextVar[ExtensionInfo] = ContextVar("perch_extension")
"""The extension whose handler (or wrapper) is currently executing."""


@contextmanager
def request_scope(
    template: Any, extension: ExtensionInfo, shared: Iterable[Any] = ()
) -> Iterator[RequestState]:
    """Open a request scope over *template*, running as *extension*.

    The dispatcher enters one scope per request; tests can use it to call
    handlers directly. *shared* lists objects the snapshot keeps by
    reference.
    """
    state = RequestState(template, shared)
    state_token = state_var.set(state)
    ext_token = extension_var.set(extension)
    try:
        yield state
    finally:
        extension_var.reset(ext_token)
        state_var.reset(state_token)


@contextmanager
def running_as(extension: ExtensionInfo) -> Iterator[None]:
    """Switch the current extension for the duration of the block."""
    token = extension_var.set(extension)
    try:
        yield
    finally:
        extension_var.reset(token)


def current_extension() -> ExtensionInfo:
    """Metadata of the extension currently executing.

    Raises ``LookupError`` outside a request.
    """
    return extension_var.get()


def current_state() -> StateView[Any]:
    """View of the current extension's state in this request's snapshot.

    Raises ``LookupError`` outside a request.
    """
    return StateView(state_var.get(), extension_var.get().handle)


def root_state() -> StateView[Any]:
    """View of the whole application state in this request's snapshot."""
    return StateView(state_var.get(), identity())
