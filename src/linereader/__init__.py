"""Buffered, chunked line reading over raw file descriptors."""

from .common.errors import (
	AllocationError,
	BackendError,
	ErrorCode,
	InvalidArgumentError,
	LineReaderError,
	ReadError,
)
from .common.models import Line
from .core.reader import (
	LineReader,
	configure,
	default_reader,
	get_next_line,
	reset,
)

__all__ = [
	"AllocationError",
	"BackendError",
	"ErrorCode",
	"InvalidArgumentError",
	"Line",
	"LineReader",
	"LineReaderError",
	"ReadError",
	"configure",
	"default_reader",
	"get_next_line",
	"reset",
]
