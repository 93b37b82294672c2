"""Destination for attempt activity events besides the attempt itself."""

from __future__ import annotations

import logging
from typing import Protocol

from proctor_app.core.models import ActivityEntry


class ActivitySink(Protocol):
    def record(self, attempt_id: str, entry: ActivityEntry) -> None: ...


class LoggingActivitySink:
    """Forwards activity entries to the ``proctor_app.activity`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("proctor_app.activity")

    def record(self, attempt_id: str, entry: ActivityEntry) -> None:
        self._logger.info(
            "attempt=%s type=%s %s %s",
            attempt_id,
            entry.type,
            entry.description,
            dict(entry.metadata),
        )


class MemoryActivitySink:
    """Keeps entries in a list; handy when a caller wants to inspect them."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, ActivityEntry]] = []

    def record(self, attempt_id: str, entry: ActivityEntry) -> None:
        self.entries.append((attempt_id, entry))
