"""Chunked line reading over raw file descriptors."""
from __future__ import annotations

import os
import threading
from typing import Callable, Dict, Iterator, Optional

from linereader.common.errors import AllocationError, InvalidArgumentError, LineReaderError, ReadError
from linereader.common.models import DEFAULT_CHUNK_SIZE, Line, ReadEvent, RuntimeConfig
from linereader.common.progress import ReadEventLogger
from linereader.core.resources import BufferBudget, BufferLease, BufferLimitError
from linereader.storage import MemoryPendingStore, PendingStore

from .buffer import PendingBuffer
from .state_machine import RESTING_STATES, DescriptorState, DescriptorStateMachine

ReadFn = Callable[[int, int], bytes]


class LineReader:
    """Returns successive newline-terminated lines from file descriptors.

    Bytes read past a newline are kept in ``store`` keyed by descriptor and
    handed back on the next call for that descriptor, so several descriptors
    can be read in any interleaving. The reader never closes or seeks a
    descriptor.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        *,
        store: Optional[PendingStore] = None,
        read: ReadFn = os.read,
        budget: Optional[BufferBudget] = None,
        events: Optional[ReadEventLogger] = None,
    ) -> None:
        # validated on every call so a bad value fails each call, not construction
        self.chunk_size = chunk_size
        self.store = store if store is not None else MemoryPendingStore()
        self.budget = budget or BufferBudget()
        self.events = events or ReadEventLogger(None)
        self._read = read
        self._machines: Dict[int, DescriptorStateMachine] = {}

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        *,
        store: Optional[PendingStore] = None,
        read: ReadFn = os.read,
    ) -> "LineReader":
        return cls(
            config.profile.chunk_size,
            store=store,
            read=read,
            budget=BufferBudget(config.profile.buffer_limits),
            events=ReadEventLogger(config.global_settings.event_log),
        )

    # Public API -------------------------------------------------------

    def next_line(self, fd: int) -> Optional[Line]:
        """Return the next line from ``fd``, or ``None`` once the stream is exhausted.

        Raises ``InvalidArgumentError`` before any I/O when ``fd`` or the chunk
        size is invalid, ``ReadError`` when the read itself fails and
        ``AllocationError`` when the buffer cannot grow. After an error the
        descriptor's pending bytes are discarded.
        """

        self._validate(fd)
        lock = getattr(self.store, "lock", None)
        if lock is None:
            return self._next_line(fd)
        with lock(fd):
            return self._next_line(fd)

    def iter_lines(self, fd: int) -> Iterator[Line]:
        while True:
            line = self.next_line(fd)
            if line is None:
                return
            yield line

    def pending(self, fd: int) -> bytes:
        buffer = self.store.load(fd)
        return buffer.peek() if buffer is not None else b""

    def state(self, fd: int) -> DescriptorState:
        machine = self._machines.get(fd)
        return machine.state if machine else DescriptorState.EMPTY

    def reset(self, fd: int) -> None:
        """Forget everything buffered for ``fd``.

        With a store that provides ``lock(fd)`` this waits for an in-flight
        call on ``fd`` to finish first.
        """

        lock = getattr(self.store, "lock", None)
        if lock is None:
            self._forget(fd)
            return
        with lock(fd):
            self._forget(fd)

    def reset_all(self) -> None:
        """Forget every descriptor; a call already in flight still completes."""

        self.store.clear()
        self._machines.clear()

    # Internal helpers -------------------------------------------------

    def _validate(self, fd: int) -> None:
        if isinstance(fd, bool) or not isinstance(fd, int) or fd < 0:
            raise InvalidArgumentError(
                f"Invalid file descriptor {fd!r}",
                fd=fd if isinstance(fd, int) and not isinstance(fd, bool) else None,
                context={"fd": fd},
            )
        chunk_size = self.chunk_size
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidArgumentError(
                f"chunk_size must be a positive integer, got {chunk_size!r}",
                fd=fd,
                context={"chunk_size": chunk_size},
            )

    def _next_line(self, fd: int) -> Optional[Line]:
        machine = self._machines.setdefault(fd, DescriptorStateMachine(fd))
        machine.transition(DescriptorState.ACCUMULATING)
        lease = self.budget.reserve()
        try:
            return self._collect(fd, machine, lease)
        except LineReaderError as exc:
            self._forget(fd)
            machine.transition(DescriptorState.ERROR, detail=str(exc))
            machine.settle(carrying=False)
            self.events.emit(ReadEvent(fd=fd, kind="error", chunk_size=self.chunk_size, detail=exc.code.value))
            raise
        finally:
            lease.release()
            if machine.state not in RESTING_STATES:
                # interrupted mid-call; the bytes read so far are gone
                self._forget(fd)

    def _collect(self, fd: int, machine: DescriptorStateMachine, lease: BufferLease) -> Optional[Line]:
        buffer = self.store.load(fd)
        if buffer is None:
            buffer = PendingBuffer()
        try:
            lease.grow(len(buffer))
        except BufferLimitError as exc:
            raise AllocationError(f"Cannot restore {len(buffer)} pending bytes", fd=fd) from exc

        reached_eof = False
        while not buffer.has_newline():
            chunk = self._read_chunk(fd)
            if not chunk:
                reached_eof = True
                break
            try:
                lease.grow(len(chunk))
                buffer.append(chunk)
            except (BufferLimitError, MemoryError) as exc:
                raise AllocationError(
                    f"Cannot grow line buffer past {len(buffer)} bytes",
                    fd=fd,
                    context={"chunk_bytes": len(chunk), "available_bytes": lease.available_bytes()},
                ) from exc

        if reached_eof:
            data = buffer.take()
            machine.transition(DescriptorState.EOF_DRAIN)
            self.store.discard(fd)
            machine.settle(carrying=False)
            self._machines.pop(fd, None)
            self.events.emit(ReadEvent(fd=fd, kind="eof", byte_count=len(data), chunk_size=self.chunk_size))
            return Line(data) if data else None

        try:
            data = buffer.pop_line()
        except MemoryError as exc:
            raise AllocationError("Cannot split line buffer", fd=fd) from exc
        machine.transition(DescriptorState.LINE_READY)
        self.store.save(fd, buffer)
        machine.settle(carrying=bool(buffer))
        # a concurrent reset_all may have dropped the entry while we were reading
        self._machines[fd] = machine
        self.events.emit(
            ReadEvent(
                fd=fd,
                kind="line",
                byte_count=len(data),
                pending_bytes=len(buffer),
                chunk_size=self.chunk_size,
            )
        )
        return Line(data)

    def _read_chunk(self, fd: int) -> bytes:
        try:
            chunk = self._read(fd, self.chunk_size)
        except OSError as exc:
            raise ReadError(
                f"Read from descriptor {fd} failed: {exc.strerror or exc}",
                fd=fd,
                context={"errno": exc.errno},
            ) from exc
        self.events.emit(ReadEvent(fd=fd, kind="read", byte_count=len(chunk), chunk_size=self.chunk_size))
        return chunk

    def _forget(self, fd: int) -> None:
        self.store.discard(fd)
        self._machines.pop(fd, None)


# ---------------------------------------------------------------------------
# Process-wide reader


_default_lock = threading.Lock()
_default_reader: Optional[LineReader] = None


def default_reader() -> LineReader:
    """Return the process-wide reader, creating it with defaults on first use."""

    global _default_reader
    with _default_lock:
        if _default_reader is None:
            _default_reader = LineReader()
        return _default_reader


def configure(
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    *,
    store: Optional[PendingStore] = None,
    config: Optional[RuntimeConfig] = None,
) -> LineReader:
    """Replace the process-wide reader; pending bytes of the old one are dropped.

    When ``config`` is given its profile wins over ``chunk_size``.
    """

    global _default_reader
    if config is not None:
        reader = LineReader.from_config(config, store=store)
    else:
        reader = LineReader(chunk_size, store=store)
    with _default_lock:
        previous, _default_reader = _default_reader, reader
    if previous is not None:
        previous.reset_all()
    return reader


def get_next_line(fd: int) -> Optional[Line]:
    return default_reader().next_line(fd)


def reset(fd: Optional[int] = None) -> None:
    reader = default_reader()
    if fd is None:
        reader.reset_all()
    else:
        reader.reset(fd)
