"""Data models shared across the reader core, storage, and configuration layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

NEWLINE = b"\n"
DEFAULT_CHUNK_SIZE = 100


@dataclass(frozen=True, slots=True)
class Line:
    """A line handed back to the caller; ownership of ``data`` transfers with it."""

    data: bytes

    @property
    def ends_with_newline(self) -> bool:
        return self.data.endswith(NEWLINE)


ReadEventKind = Literal["read", "line", "eof", "error"]


@dataclass(slots=True)
class ReadEvent:
    """Structured record of a single reader step, written to the event log."""

    fd: int
    kind: ReadEventKind
    byte_count: int = 0
    pending_bytes: int = 0
    chunk_size: Optional[int] = None
    detail: Optional[str] = None


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    event_log: Optional[str] = None


@dataclass(slots=True)
class BufferLimits:
    """Optional byte budget enforced by the BufferBudget."""

    max_buffer_bytes: Optional[int] = None


@dataclass(slots=True)
class ProfileSettings:
    """Profile-specific reader settings."""

    description: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    buffer_limits: BufferLimits = field(default_factory=BufferLimits)


@dataclass(slots=True)
class RuntimeConfig:
    """Resolved configuration for a single reader."""

    global_settings: GlobalSettings
    profile: ProfileSettings
