"""State machine tracking the pending-buffer lifecycle of one descriptor."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from linereader.common.errors import BackendError, ErrorCode


class DescriptorState(str, Enum):
    """Lifecycle states of a descriptor's pending buffer."""

    EMPTY = "EMPTY"
    ACCUMULATING = "ACCUMULATING"
    LINE_READY = "LINE_READY"
    CARRY = "CARRY"
    EOF_DRAIN = "EOF_DRAIN"
    ERROR = "ERROR"


_TRANSITIONS: Dict[DescriptorState, FrozenSet[DescriptorState]] = {
    DescriptorState.EMPTY: frozenset({DescriptorState.ACCUMULATING}),
    DescriptorState.CARRY: frozenset({DescriptorState.ACCUMULATING}),
    DescriptorState.ACCUMULATING: frozenset(
        {DescriptorState.LINE_READY, DescriptorState.EOF_DRAIN, DescriptorState.ERROR}
    ),
    DescriptorState.LINE_READY: frozenset({DescriptorState.EMPTY, DescriptorState.CARRY}),
    DescriptorState.EOF_DRAIN: frozenset({DescriptorState.EMPTY}),
    DescriptorState.ERROR: frozenset({DescriptorState.EMPTY}),
}

# states a call may finish in; everything else is mid-call
RESTING_STATES = frozenset({DescriptorState.EMPTY, DescriptorState.CARRY})


class DescriptorStateMachine:
    """Validates transitions and keeps a short history for diagnostics."""

    def __init__(self, fd: int, *, history_limit: int = 32) -> None:
        self.fd = fd
        self._state = DescriptorState.EMPTY
        self._history: List[DescriptorState] = [DescriptorState.EMPTY]
        self._history_limit = max(1, history_limit)

    @property
    def state(self) -> DescriptorState:
        return self._state

    @property
    def history(self) -> List[DescriptorState]:
        return list(self._history)

    def transition(self, target: DescriptorState, *, detail: Optional[str] = None) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise BackendError(
                ErrorCode.STATE_ERROR,
                f"Invalid transition {self._state.value} -> {target.value}",
                context={
                    "fd": self.fd,
                    "detail": detail,
                    "history": [state.value for state in self._history],
                },
            )
        self._state = target
        self._history.append(target)
        if len(self._history) > self._history_limit:
            del self._history[0]

    def settle(self, *, carrying: bool) -> None:
        """Leave a terminal outward state for EMPTY or CARRY."""

        if self._state == DescriptorState.LINE_READY and carrying:
            self.transition(DescriptorState.CARRY)
        else:
            self.transition(DescriptorState.EMPTY)
