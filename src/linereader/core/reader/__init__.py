"""Line reading: pending buffers, descriptor state, and the reader itself."""

from .buffer import PendingBuffer
from .line_reader import LineReader, configure, default_reader, get_next_line, reset
from .state_machine import DescriptorState, DescriptorStateMachine

__all__ = [
    "DescriptorState",
    "DescriptorStateMachine",
    "LineReader",
    "PendingBuffer",
    "configure",
    "default_reader",
    "get_next_line",
    "reset",
]
