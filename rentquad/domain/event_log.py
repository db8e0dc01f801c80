"""Bounded, newest-first progress log shown alongside a rental."""

from __future__ import annotations

import itertools
import time
from collections import deque
from datetime import datetime, timezone

from .entities import LogEntry
from .enums import LogSource

DEFAULT_LOG_LIMIT = 40


class EventLog:
    """Prepend-only ring buffer; the oldest entry drops once ``limit`` is hit."""

    def __init__(self, limit: int = DEFAULT_LOG_LIMIT):
        self._entries: deque[LogEntry] = deque(maxlen=limit)
        self._seq = itertools.count(1)

    def add(self, source: LogSource, message: str) -> LogEntry:
        # sequence suffix keeps ids unique for same-nanosecond appends
        entry = LogEntry(
            id=f"{time.time_ns()}-{next(self._seq)}",
            source=source,
            message=message,
            timestamp=datetime.now(timezone.utc),
        )
        self._entries.appendleft(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
