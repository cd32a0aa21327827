from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class AtomicCell(Generic[T]):
    # Shared reference cell; compare_and_set is the only primitive guarded by the lock.
    __slots__ = ("_value", "_lock")

    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = Lock()

    def get(self) -> T:
        return self._value

    def reset(self, value: T) -> T:
        with self._lock:
            self._value = value
        return value

    def compare_and_set(self, expected: T, new: T) -> bool:
        # Identity comparison: a concurrent writer always installs a new object.
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True

    def swap(self, fn: Callable[..., T], *args: Any) -> T:
        # Optimistic update; fn may be invoked more than once under contention.
        while True:
            current = self._value
            updated = fn(current, *args)
            if self.compare_and_set(current, updated):
                return updated

    def __repr__(self) -> str:
        return f"AtomicCell({self._value!r})"


def buffer() -> AtomicCell[tuple[object, ...]]:
    # Capture buffers hold immutable tuples so every append produces a distinct object.
    return AtomicCell(())


def append(cell: AtomicCell[tuple[object, ...]], item: object) -> None:
    cell.swap(lambda items: items + (item,))


def get_and_clear(cell: AtomicCell[tuple[object, ...]]) -> list[object]:
    # Drain all-or-nothing: items appended while we read are picked up on retry.
    while True:
        current = cell.get()
        if cell.compare_and_set(current, ()):
            return list(current)
