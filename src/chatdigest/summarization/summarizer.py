"""Summary generation over formatted conversations."""

from __future__ import annotations

import asyncio
from typing import Sequence

from chatdigest.messaging.people import PersonDirectory
from chatdigest.metrics import MetricsRecorder
from chatdigest.progress import NullProgressSink, ProgressSink

from .prompt import Conversation, build_report_prompt, format_conversations
from .resilient import (
    DEFAULT_INITIAL_BACKOFF_MS,
    DEFAULT_MAX_ATTEMPTS,
    LLMProtocol,
    Sleep,
    summarize_with_retry,
)


class Summarizer:
    """Turns fetched conversations into a markdown report body."""

    def __init__(
        self,
        llm: LLMProtocol,
        people: PersonDirectory,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
        metrics: MetricsRecorder | None = None,
        progress: ProgressSink | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize summarizer.

        Args:
            llm: LLM instance that implements generate() method
            people: Directory used to resolve author display names
            max_attempts: Total Gemini calls allowed against 503 overloads
            initial_backoff_ms: First wait between attempts (doubles each retry)
        """
        self.llm = llm
        self.people = people
        self.max_attempts = max_attempts
        self.initial_backoff_ms = initial_backoff_ms
        self.metrics = metrics or MetricsRecorder()
        self.progress = progress or NullProgressSink()
        self._sleep = sleep

    async def build_prompt(self, conversations: Sequence[Conversation]) -> str:
        with self.metrics.timed("process-conversations"):
            text = await format_conversations(conversations, self.people)
        return build_report_prompt(text)

    async def summarize(self, conversations: Sequence[Conversation]) -> str:
        """
        Generate the report summary for all conversations in one call.

        Returns:
            Summary markdown, stripped
        """
        prompt = await self.build_prompt(conversations)
        summary = await summarize_with_retry(
            self.llm,
            prompt,
            max_attempts=self.max_attempts,
            initial_backoff_ms=self.initial_backoff_ms,
            progress=self.progress,
            metrics=self.metrics,
            sleep=self._sleep,
        )
        return summary.strip()
