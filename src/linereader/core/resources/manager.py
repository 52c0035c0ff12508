"""Byte budgeting for buffers accumulated while looking for a line."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from linereader.common.models import BufferLimits


class BufferLimitError(RuntimeError):
    """Raised when a reservation would exceed the configured byte budget."""


@dataclass(slots=True)
class BufferLease:
    """Bytes held by one ``next_line`` call; the limit applies per lease."""

    budget: "BufferBudget"
    byte_count: int = 0
    _released: bool = False

    def grow(self, byte_count: int) -> None:
        """Reserve additional bytes on top of what this lease already holds."""

        byte_count = max(0, int(byte_count))
        if self._released:
            raise BufferLimitError("lease already released")
        limit = self.budget.limits.max_buffer_bytes
        if limit is not None and self.byte_count + byte_count > limit:
            raise BufferLimitError(
                f"Buffer budget exceeded: requested {self.byte_count + byte_count} bytes, "
                f"limit {limit} bytes"
            )
        self.byte_count += byte_count

    def available_bytes(self) -> Optional[int]:
        limit = self.budget.limits.max_buffer_bytes
        if limit is None:
            return None
        return max(0, limit - self.byte_count)

    def release(self) -> None:
        self._released = True

    def __enter__(self) -> "BufferLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.release()


class BufferBudget:
    """Caps how many bytes a single call may hold in its accumulating buffer."""

    def __init__(self, limits: Optional[BufferLimits] = None) -> None:
        self.limits = limits or BufferLimits()

    def reserve(self, byte_count: int = 0) -> BufferLease:
        lease = BufferLease(self)
        lease.grow(byte_count)
        return lease
