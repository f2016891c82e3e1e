"""Structured progress channel shared by fetch, resolution and retry code.

Components emit ``(stage, detail)`` records instead of calling a debug
logger directly. The web layer streams them to the browser; everything else
just logs them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def message(self) -> str:
        return str(self.detail.get("message", ""))


class ProgressSink(Protocol):
    """Anything that accepts progress records."""

    def emit(self, stage: str, **detail: Any) -> None:
        ...


class NullProgressSink:
    def emit(self, stage: str, **detail: Any) -> None:
        return None


class LoggingProgressSink:
    """Writes every event to a logger at DEBUG (or a chosen level)."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self._logger = logger or _LOG
        self._level = level

    def emit(self, stage: str, **detail: Any) -> None:
        self._logger.log(self._level, "[%s] %s", stage, detail)


class QueueProgressSink:
    """Buffers events on an asyncio queue for a streaming consumer."""

    def __init__(self, queue: asyncio.Queue[ProgressEvent] | None = None) -> None:
        self.queue: asyncio.Queue[ProgressEvent] = queue or asyncio.Queue()

    def emit(self, stage: str, **detail: Any) -> None:
        self.queue.put_nowait(ProgressEvent(stage, dict(detail)))


class RecordingProgressSink:
    """Keeps events in memory; handy for inspecting a run after the fact."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def emit(self, stage: str, **detail: Any) -> None:
        self.events.append(ProgressEvent(stage, dict(detail)))

    def stages(self) -> list[str]:
        return [event.stage for event in self.events]


class FanoutProgressSink:
    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks = sinks

    def emit(self, stage: str, **detail: Any) -> None:
        for sink in self._sinks:
            sink.emit(stage, **detail)
