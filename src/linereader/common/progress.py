"""Structured event logging for reader steps."""
from __future__ import annotations

import json
import time
import warnings
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .models import ReadEvent


class EventLogWarning(RuntimeWarning):
    """Emitted once when the event log stops accepting writes."""


class ReadEventLogger:
    """Writes reader events to JSONL for later inspection.

    A write failure never propagates into the read that produced the event:
    the bytes behind it are already consumed from the descriptor. The logger
    warns with ``EventLogWarning`` and switches itself off instead.
    """

    def __init__(self, path: Optional[Path | str]) -> None:
        self.path = Path(path) if path else None
        self.failure: Optional[OSError] = None
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return self.path is not None and self.failure is None

    def emit(self, event: ReadEvent) -> None:
        if not self.enabled:
            return
        payload = asdict(event)
        payload["timestamp"] = time.time()
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload))
                handle.write("\n")
        except OSError as exc:
            self.failure = exc
            warnings.warn(
                f"Event log '{self.path}' disabled after write failure: {exc}",
                EventLogWarning,
                stacklevel=2,
            )
