"""Cross-request shared state.

Every request works on its own snapshot of the application state, so a
plain value mutated by one request is never seen by another. State that
*must* outlive a request lives in a ``SharedCell``, created during
initialization::

    def counter(ctx: Initializer) -> Counter:
        cell = ctx.lift_external(SharedCell, 0)
        ctx.add_routes([("/hit", hit)])
        return Counter(hits=cell)

    def hit():
        return str(current_state().get().hits.update(lambda n: n + 1))

Thread safety:
    Reads and writes are serialized by a ``threading.Lock``, which covers
    both asyncio tasks and free-threaded workers.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any


class Shared:
    """Base for values shared by reference across per-request snapshots.

    Copying a ``Shared`` value (shallow or deep) returns the value itself,
    so snapshots point at the same object instead of a private copy.
    """

    __slots__ = ()

    def __copy__(self) -> Shared:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> Shared:
        return self


class SharedCell[T](Shared):
    """A lock-guarded mutable reference."""

    __slots__ = ("_lock", "_value")

    def __init__(self, value: T) -> None:
        self._lock = threading.Lock()
        self._value = value

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value

    def update(self, fn: Callable[[T], T]) -> T:
        """Atomically replace the value with ``fn(value)`` and return it.

        *fn* runs while the lock is held; keep it short and never call
        back into the same cell from it.
        """
        with self._lock:
            self._value = fn(self._value)
            return self._value

    def __repr__(self) -> str:
        return f"SharedCell({self.get()!r})"
