"""Call timing and per-service counters.

A ``MetricsRecorder`` is owned by the runtime context and shared by every
fetch and summarize call. Counters only ever increase; all updates happen on
the event loop thread so no lock is taken.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

_LOG = logging.getLogger(__name__)

# Calls slower than this are logged at WARNING.
SLOW_CALL_MS = 5000.0


@dataclass
class ServiceStats:
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0


@dataclass(frozen=True)
class TimerResult:
    label: str
    duration_ms: float


def _rate(part: int, whole: int) -> str:
    if whole <= 0:
        return "0%"
    return f"{part / whole * 100:.2f}%"


class Timer:
    """Handle returned by :meth:`MetricsRecorder.start`."""

    def __init__(self, recorder: "MetricsRecorder", label: str, service: str | None) -> None:
        self._recorder = recorder
        self.label = label
        self.service = service
        self._started = time.perf_counter()
        self._result: TimerResult | None = None

    def stop(self, error: BaseException | None = None) -> TimerResult:
        """Stop the timer and record it; later calls return the first result."""
        if self._result is not None:
            return self._result
        duration_ms = (time.perf_counter() - self._started) * 1000
        self._result = TimerResult(self.label, duration_ms)
        if self.service:
            self._recorder.record_call(self.service, duration_ms, error)
        level = logging.WARNING if duration_ms > SLOW_CALL_MS else logging.DEBUG
        _LOG.log(level, "Timed %s: %.1fms%s", self.label, duration_ms, " (error)" if error else "")
        return self._result


class MetricsRecorder:
    """Process-wide counters keyed by logical service name."""

    def __init__(self) -> None:
        self.started_at = time.time()
        self.request_count = 0
        self.error_count = 0
        self._services: dict[str, ServiceStats] = {
            "ringcentral": ServiceStats(),
            "gemini": ServiceStats(),
        }

    def start(self, label: str, service: str | None = None) -> Timer:
        return Timer(self, label, service)

    @contextmanager
    def timed(self, label: str, service: str | None = None) -> Iterator[Timer]:
        """Time a block, recording an error if it raises."""
        timer = self.start(label, service)
        try:
            yield timer
        except BaseException as exc:
            timer.stop(error=exc)
            raise
        timer.stop()

    def record_call(self, service: str, duration_ms: float, error: BaseException | None = None) -> None:
        stats = self._services.setdefault(service, ServiceStats())
        stats.calls += 1
        stats.total_ms += duration_ms
        if error is not None:
            stats.errors += 1

    def record_request(self, error: BaseException | None = None) -> None:
        self.request_count += 1
        if error is not None:
            self.error_count += 1

    def record_failure(self) -> None:
        """Count an error against a request already passed to record_request."""
        self.error_count += 1

    def service(self, name: str) -> ServiceStats:
        """Return a copy of one service's counters."""
        stats = self._services.get(name, ServiceStats())
        return ServiceStats(stats.calls, stats.errors, stats.total_ms)

    def api_stats(self) -> dict[str, dict[str, object]]:
        stats: dict[str, dict[str, object]] = {}
        for name, svc in self._services.items():
            average = svc.total_ms / svc.calls if svc.calls else 0.0
            stats[name] = {
                "totalCalls": svc.calls,
                "errors": svc.errors,
                "errorRate": _rate(svc.errors, svc.calls),
                "averageResponseTime": f"{average:.2f}ms",
            }
        return stats

    def app_stats(self) -> dict[str, object]:
        return {
            "uptime": int((time.time() - self.started_at) * 1000),
            "requestCount": self.request_count,
            "errorCount": self.error_count,
            "errorRate": _rate(self.error_count, self.request_count),
            "apiStats": self.api_stats(),
        }
