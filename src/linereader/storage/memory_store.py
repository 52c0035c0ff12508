"""In-process pending-buffer stores keyed by descriptor."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from linereader.core.reader.buffer import PendingBuffer


@runtime_checkable
class PendingStore(Protocol):
    """Storage for bytes read from a descriptor but not yet returned."""

    def load(self, fd: int) -> Optional["PendingBuffer"]:
        ...

    def save(self, fd: int, buffer: "PendingBuffer") -> None:
        ...

    def discard(self, fd: int) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryPendingStore:
    """Plain dict-backed store for single-threaded callers.

    Buffers are kept by reference, so a carried remainder keeps growing in
    place on the next call instead of being copied.
    """

    def __init__(self) -> None:
        self._pending: Dict[int, "PendingBuffer"] = {}

    def load(self, fd: int) -> Optional["PendingBuffer"]:
        return self._pending.get(fd)

    def save(self, fd: int, buffer: "PendingBuffer") -> None:
        if not buffer:
            self._pending.pop(fd, None)
            return
        self._pending[fd] = buffer

    def discard(self, fd: int) -> None:
        self._pending.pop(fd, None)

    def clear(self) -> None:
        self._pending.clear()


class LockingPendingStore(MemoryPendingStore):
    """Thread-safe store that also hands out one lock per descriptor.

    ``LineReader`` holds ``lock(fd)`` for the whole of a ``next_line`` call,
    which serializes callers sharing a descriptor while leaving other
    descriptors independent. A descriptor's lock exists only while some caller
    holds or waits for it.
    """

    def __init__(self) -> None:
        super().__init__()
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self._waiters: Dict[int, int] = {}

    @contextmanager
    def lock(self, fd: int) -> Iterator[None]:
        with self._guard:
            fd_lock = self._locks.setdefault(fd, threading.Lock())
            self._waiters[fd] = self._waiters.get(fd, 0) + 1
        try:
            with fd_lock:
                yield
        finally:
            with self._guard:
                self._waiters[fd] -= 1
                if not self._waiters[fd]:
                    del self._waiters[fd]
                    del self._locks[fd]

    def load(self, fd: int) -> Optional["PendingBuffer"]:
        with self._guard:
            return super().load(fd)

    def save(self, fd: int, buffer: "PendingBuffer") -> None:
        with self._guard:
            super().save(fd, buffer)

    def discard(self, fd: int) -> None:
        with self._guard:
            super().discard(fd)

    def clear(self) -> None:
        with self._guard:
            super().clear()
