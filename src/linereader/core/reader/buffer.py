"""Growable byte buffer that accumulates chunks until a line boundary."""
from __future__ import annotations

from linereader.common.models import NEWLINE

# consumed prefix is only dropped once it is at least this large
_COMPACT_THRESHOLD = 4096


class PendingBuffer:
    """Owned, append-only byte buffer with newline-aware consumption.

    Lines are consumed by advancing a start offset; the consumed prefix is
    dropped once it outweighs the unread tail, so carrying the buffer from call
    to call costs amortised constant work per byte.
    """

    __slots__ = ("_data", "_start", "_scanned")

    def __init__(self, initial: bytes = b"") -> None:
        self._data = bytearray(initial)
        self._start = 0
        # absolute offset before which the unread bytes are known to be newline-free
        self._scanned = 0

    def __len__(self) -> int:
        return len(self._data) - self._start

    def __bool__(self) -> bool:
        return len(self._data) > self._start

    def append(self, chunk: bytes) -> None:
        self._data.extend(chunk)

    def newline_index(self) -> int:
        """Return the index of the first unread newline, or -1 when there is none."""

        index = self._find_newline()
        return index - self._start if index >= 0 else -1

    def has_newline(self) -> bool:
        return self._find_newline() >= 0

    def pop_line(self) -> bytes:
        """Consume and return bytes up to and including the first newline.

        Raises ``ValueError`` if no newline is buffered.
        """

        index = self._find_newline()
        if index < 0:
            raise ValueError("no newline buffered")
        with memoryview(self._data) as view:
            line = bytes(view[self._start : index + 1])
        self._start = index + 1
        self._compact()
        return line

    def peek(self) -> bytes:
        with memoryview(self._data) as view:
            return bytes(view[self._start :])

    def take(self) -> bytes:
        """Return every unread byte and empty the buffer."""

        data = self.peek()
        self.clear()
        return data

    def clear(self) -> None:
        self._data.clear()
        self._start = 0
        self._scanned = 0

    def _find_newline(self) -> int:
        index = self._data.find(NEWLINE, max(self._start, self._scanned))
        if index < 0:
            self._scanned = len(self._data)
        return index

    def _compact(self) -> None:
        if self._start == len(self._data):
            self.clear()
        elif self._start >= _COMPACT_THRESHOLD and self._start * 2 >= len(self._data):
            del self._data[: self._start]
            self._scanned = max(0, self._scanned - self._start)
            self._start = 0
