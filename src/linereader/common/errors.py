"""Shared error codes and exceptions for the line reader."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    IO_ERROR = "IO_ERROR"
    ALLOCATION_ERROR = "ALLOCATION_ERROR"
    STATE_ERROR = "STATE_ERROR"


class BackendError(RuntimeError):
    """Exception carrying a structured error code for callers."""

    def __init__(self, code: ErrorCode, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:  # pragma: no cover - formatting sugar
        base = super().__str__()
        return f"[{self.code.value}] {base}" if base else self.code.value


class LineReaderError(BackendError):
    """Base class for errors surfaced by ``LineReader.next_line``."""

    default_code = ErrorCode.IO_ERROR

    def __init__(self, message: str, *, fd: Optional[int] = None, context: Optional[Dict[str, Any]] = None) -> None:
        payload = dict(context or {})
        if fd is not None:
            payload.setdefault("fd", fd)
        super().__init__(self.default_code, message, context=payload)
        self.fd = fd


class InvalidArgumentError(LineReaderError):
    """Descriptor or chunk size rejected before any I/O happened."""

    default_code = ErrorCode.INVALID_ARGUMENT


class ReadError(LineReaderError):
    """The underlying read primitive failed."""

    default_code = ErrorCode.IO_ERROR


class AllocationError(LineReaderError):
    """A buffer could not grow or be split."""

    default_code = ErrorCode.ALLOCATION_ERROR
