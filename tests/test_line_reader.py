"""Behaviour of LineReader.next_line over real and scripted descriptors."""
from __future__ import annotations

import errno
import math
import os
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from linereader import AllocationError, ErrorCode, InvalidArgumentError, Line, LineReader, ReadError
from linereader.common.models import BufferLimits
from linereader.core.reader import DescriptorState, PendingBuffer
from linereader.core.resources import BufferBudget
from linereader.storage import LockingPendingStore


def test_reads_lines_in_chunks(tmp_path: Path) -> None:
    fd = _open(tmp_path, b"ab\ncdef\ngh")
    reader = LineReader(4)

    assert _data(reader.next_line(fd)) == b"ab\n"
    assert _data(reader.next_line(fd)) == b"cdef\n"
    last = reader.next_line(fd)
    assert last is not None
    assert last.data == b"gh"
    assert not last.ends_with_newline
    assert reader.next_line(fd) is None


def test_empty_source_signals_end_immediately(tmp_path: Path) -> None:
    fd = _open(tmp_path, b"")
    assert LineReader(4).next_line(fd) is None


def test_single_byte_chunks_return_bare_newlines(tmp_path: Path) -> None:
    fd = _open(tmp_path, b"\n\n")
    reader = LineReader(1)

    assert _data(reader.next_line(fd)) == b"\n"
    assert _data(reader.next_line(fd)) == b"\n"
    assert reader.next_line(fd) is None


def test_pending_bytes_holding_several_lines_need_no_read() -> None:
    source = _ScriptedSource({3: b"a\nb\nc\n"})
    reader = LineReader(100, read=source)

    assert _data(reader.next_line(3)) == b"a\n"
    assert reader.pending(3) == b"b\nc\n"
    assert _data(reader.next_line(3)) == b"b\n"
    assert _data(reader.next_line(3)) == b"c\n"
    assert len(source.calls) == 1
    assert reader.next_line(3) is None


@pytest.mark.parametrize("chunk_size", [1, 2, 3, 7, 100])
def test_concatenated_lines_reproduce_stream(chunk_size: int) -> None:
    payload = b"first\n\nsecond line\nx\n" + b"z" * 250 + b"\ntail"
    source = _ScriptedSource({5: payload})
    reader = LineReader(chunk_size, read=source)

    lines = list(reader.iter_lines(5))

    assert b"".join(line.data for line in lines) == payload
    for line in lines[:-1]:
        assert line.data.endswith(b"\n")
        assert b"\n" not in line.data[:-1]
    assert all(size == chunk_size for _, size in source.calls)


def test_read_count_has_chunk_lower_bound() -> None:
    line = b"x" * 10 + b"\n"
    source = _ScriptedSource({4: line})
    reader = LineReader(3, read=source)

    assert _data(reader.next_line(4)) == line
    assert len(source.calls) >= math.ceil(len(line) / 3)
    assert len(source.calls) == 4


def test_end_of_stream_is_idempotent(tmp_path: Path) -> None:
    fd = _open(tmp_path, b"only\n")
    reader = LineReader(2)

    assert _data(reader.next_line(fd)) == b"only\n"
    for _ in range(3):
        assert reader.next_line(fd) is None
    assert reader.state(fd) == DescriptorState.EMPTY


def test_interleaved_descriptors_keep_their_own_pending(tmp_path: Path) -> None:
    fd_a = _open(tmp_path, b"a1\na2\na3", name="a.txt")
    fd_b = _open(tmp_path, b"b1\nb2\n", name="b.txt")
    reader = LineReader(4)

    seen: List[Tuple[str, Optional[bytes]]] = []
    for _ in range(4):
        seen.append(("a", _data(reader.next_line(fd_a))))
        seen.append(("b", _data(reader.next_line(fd_b))))

    assert [data for name, data in seen if name == "a"] == [b"a1\n", b"a2\n", b"a3", None]
    assert [data for name, data in seen if name == "b"] == [b"b1\n", b"b2\n", None, None]


def test_pipe_carries_partial_line_between_writes() -> None:
    read_fd, write_fd = os.pipe()
    try:
        reader = LineReader(100)
        os.write(write_fd, b"one\npar")
        assert _data(reader.next_line(read_fd)) == b"one\n"
        assert reader.pending(read_fd) == b"par"
        assert reader.state(read_fd) == DescriptorState.CARRY

        os.write(write_fd, b"tial\n")
        assert _data(reader.next_line(read_fd)) == b"partial\n"
        assert reader.state(read_fd) == DescriptorState.EMPTY

        os.close(write_fd)
        write_fd = -1
        assert reader.next_line(read_fd) is None
    finally:
        if write_fd >= 0:
            os.close(write_fd)
        os.close(read_fd)


@pytest.mark.parametrize("fd", [-1, -42, True, "3", 2.0, None])
def test_invalid_descriptor_rejected_without_io(fd) -> None:
    source = _ScriptedSource({})
    reader = LineReader(4, read=source)

    with pytest.raises(InvalidArgumentError) as exc:
        reader.next_line(fd)

    assert exc.value.code == ErrorCode.INVALID_ARGUMENT
    assert source.calls == []


@pytest.mark.parametrize("chunk_size", [0, -5, True, "100"])
def test_invalid_chunk_size_fails_every_call(chunk_size) -> None:
    source = _ScriptedSource({3: b"data\n"})
    reader = LineReader(chunk_size, read=source)

    for _ in range(2):
        with pytest.raises(InvalidArgumentError) as exc:
            reader.next_line(3)
        assert exc.value.code == ErrorCode.INVALID_ARGUMENT
    assert source.calls == []
    assert reader.pending(3) == b""


def test_read_failure_discards_pending_bytes() -> None:
    source = _ScriptedSource({6: b"ab\ncd\nef"}, fail_after=1)
    reader = LineReader(4, read=source)

    assert _data(reader.next_line(6)) == b"ab\n"
    assert reader.pending(6) == b"c"

    with pytest.raises(ReadError) as exc:
        reader.next_line(6)

    assert exc.value.code == ErrorCode.IO_ERROR
    assert exc.value.context["errno"] == errno.EIO
    assert isinstance(exc.value.__cause__, OSError)
    assert reader.pending(6) == b""
    assert reader.state(6) == DescriptorState.EMPTY


def test_unreadable_descriptor_raises_read_error(tmp_path: Path) -> None:
    path = tmp_path / "write_only.txt"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT)
    try:
        with pytest.raises(ReadError) as exc:
            LineReader(8).next_line(fd)
        assert exc.value.fd == fd
    finally:
        os.close(fd)


def test_buffer_budget_overflow_is_allocation_error() -> None:
    source = _ScriptedSource({7: b"0123456789\nrest\n"})
    budget = BufferBudget(BufferLimits(max_buffer_bytes=8))
    reader = LineReader(4, read=source, budget=budget)

    with pytest.raises(AllocationError) as exc:
        reader.next_line(7)

    assert exc.value.code == ErrorCode.ALLOCATION_ERROR
    assert exc.value.context["available_bytes"] == 0
    assert reader.pending(7) == b""
    assert reader.state(7) == DescriptorState.EMPTY


def test_memory_error_while_growing_is_allocation_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(self, chunk: bytes) -> None:
        raise MemoryError

    source = _ScriptedSource({8: b"abc"})
    reader = LineReader(2, read=source)
    monkeypatch.setattr(PendingBuffer, "append", _boom)

    with pytest.raises(AllocationError):
        reader.next_line(8)
    assert reader.pending(8) == b""


def test_reader_recovers_after_interrupted_read() -> None:
    class _Interrupting(_ScriptedSource):
        def __call__(self, fd: int, size: int) -> bytes:
            if not self.calls:
                self.calls.append((fd, size))
                raise KeyboardInterrupt
            return super().__call__(fd, size)

    source = _Interrupting({9: b"line\n"})
    reader = LineReader(8, read=source)

    with pytest.raises(KeyboardInterrupt):
        reader.next_line(9)

    assert reader.state(9) == DescriptorState.EMPTY
    assert _data(reader.next_line(9)) == b"line\n"


def test_reset_forgets_pending_bytes() -> None:
    source = _ScriptedSource({3: b"a\nbc", 4: b"x\nyz"})
    reader = LineReader(100, read=source)
    reader.next_line(3)
    reader.next_line(4)

    reader.reset(3)
    assert reader.pending(3) == b""
    assert reader.pending(4) == b"yz"

    reader.reset_all()
    assert reader.pending(4) == b""
    assert reader.store.load(4) is None


def test_reset_all_during_blocked_read_lets_call_finish() -> None:
    read_fd, write_fd = os.pipe()
    reader = LineReader(100, store=LockingPendingStore())
    outcome: List[object] = []
    started = threading.Event()

    def _worker() -> None:
        started.set()
        try:
            outcome.append(reader.next_line(read_fd))
        except Exception as exc:  # surfaced through the assertion below
            outcome.append(exc)

    worker = threading.Thread(target=_worker)
    worker.start()
    try:
        assert started.wait(timeout=5)
        time.sleep(0.05)
        reader.reset_all()
        os.write(write_fd, b"tail")
    finally:
        os.close(write_fd)
        worker.join(timeout=5)
        os.close(read_fd)

    assert outcome == [Line(b"tail")]
    assert reader.state(read_fd) == DescriptorState.EMPTY


def test_invalid_descriptor_error_carries_fd() -> None:
    with pytest.raises(InvalidArgumentError) as exc:
        LineReader(4).next_line(-3)
    assert exc.value.fd == -3
    assert exc.value.context["fd"] == -3


def test_carried_buffer_is_reused_between_calls() -> None:
    source = _ScriptedSource({3: b"a\nb\nc\npartial"})
    reader = LineReader(100, read=source)

    reader.next_line(3)
    carried = reader.store.load(3)
    assert _data(reader.next_line(3)) == b"b\n"

    assert reader.store.load(3) is carried
    assert reader.pending(3) == b"c\npartial"


def test_one_chunk_of_many_short_lines() -> None:
    payload = b"y\n" * 32_768
    source = _ScriptedSource({4: payload})
    reader = LineReader(len(payload), read=source)

    lines = list(reader.iter_lines(4))

    assert len(lines) == 32_768
    assert b"".join(line.data for line in lines) == payload
    assert len(source.calls) == 2


# ---------------------------------------------------------------------------
# Helpers


class _ScriptedSource:
    """Stands in for os.read, serving bytes per descriptor and recording calls."""

    def __init__(self, payloads: Dict[int, bytes], *, fail_after: Optional[int] = None) -> None:
        self.payloads = dict(payloads)
        self.offsets: Dict[int, int] = {fd: 0 for fd in payloads}
        self.fail_after = fail_after
        self.calls: List[Tuple[int, int]] = []

    def __call__(self, fd: int, size: int) -> bytes:
        self.calls.append((fd, size))
        if self.fail_after is not None and len(self.calls) > self.fail_after:
            raise OSError(errno.EIO, "Input/output error")
        offset = self.offsets[fd]
        chunk = self.payloads[fd][offset : offset + size]
        self.offsets[fd] = offset + len(chunk)
        return chunk


def _open(tmp_path: Path, payload: bytes, *, name: str = "source.txt") -> int:
    path = tmp_path / name
    path.write_bytes(payload)
    fd = os.open(path, os.O_RDONLY)
    _OPENED.append(fd)
    return fd


def _data(line) -> Optional[bytes]:
    return None if line is None else line.data


_OPENED: List[int] = []


@pytest.fixture(autouse=True)
def _close_descriptors():
    yield
    while _OPENED:
        os.close(_OPENED.pop())
