"""Retry wrapper for the summarization call.

Gemini answers 503 when the model is overloaded; that is the only failure
worth waiting out. Anything else surfaces immediately.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from chatdigest.errors import OverloadFailure, UpstreamFailure
from chatdigest.metrics import MetricsRecorder
from chatdigest.progress import NullProgressSink, ProgressSink

_LOG = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_MS = 2000
DEFAULT_MULTIPLIER = 2

_OVERLOAD_STATUS = 503
_OVERLOAD_TEXT = re.compile(r"\b503\b|\bUNAVAILABLE\b")
_SERVICE = "gemini"

Sleep = Callable[[float], Awaitable[object]]


class LLMProtocol(Protocol):
    """Protocol for LLM interface."""

    async def generate(self, prompt: str) -> str:
        """Generate text from a prompt."""
        ...


def _status_of(exc: BaseException) -> int | None:
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_transient_overload(exc: BaseException) -> bool:
    """True when ``exc`` signals a 503-style overload.

    A numeric status on the exception is authoritative; the message is only
    inspected when there is none.
    """
    status = _status_of(exc)
    if status is not None:
        return status == _OVERLOAD_STATUS
    text = str(exc)
    return bool(_OVERLOAD_TEXT.search(text)) or "overloaded" in text.lower()


@dataclass
class RetryState:
    attempts_remaining: int
    backoff_ms: int


async def summarize_with_retry(
    generator: LLMProtocol,
    prompt: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
    multiplier: int = DEFAULT_MULTIPLIER,
    progress: ProgressSink | None = None,
    metrics: MetricsRecorder | None = None,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Call ``generator.generate(prompt)``, waiting out transient overloads.

    ``max_attempts`` is the total number of calls. Each overload that leaves
    attempts remaining waits ``backoff_ms`` (then multiplies it) before the
    next call.

    Raises:
        OverloadFailure: every attempt was answered with an overload.
        UpstreamFailure: any other error; raised on first occurrence.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    progress = progress or NullProgressSink()
    metrics = metrics or MetricsRecorder()
    state = RetryState(attempts_remaining=max_attempts, backoff_ms=initial_backoff_ms)

    while True:
        timer = metrics.start("gemini-api-call", service=_SERVICE)
        try:
            result = await generator.generate(prompt)
        except Exception as exc:
            timer.stop(error=exc)
            if not is_transient_overload(exc):
                _LOG.error("Gemini API error: %s", exc)
                raise UpstreamFailure(exc, _status_of(exc)) from exc

            state.attempts_remaining -= 1
            if state.attempts_remaining <= 0:
                _LOG.error("Gemini API still overloaded after %d attempts", max_attempts)
                raise OverloadFailure(max_attempts) from exc

            wait_ms = state.backoff_ms
            _LOG.warning(
                "Gemini API busy, retrying in %.1fs (%d retries left)",
                wait_ms / 1000,
                state.attempts_remaining,
            )
            progress.emit(
                "summarize_retry",
                message=(
                    f"Gemini API is busy. Retrying in {wait_ms / 1000:g} seconds... "
                    f"({state.attempts_remaining} retries left)"
                ),
                attempts_remaining=state.attempts_remaining,
                wait_ms=wait_ms,
            )
            await sleep(wait_ms / 1000)
            state.backoff_ms *= multiplier
            continue

        timer.stop()
        return result
