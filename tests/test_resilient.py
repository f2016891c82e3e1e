"""Tests for the overload-tolerant summarization call."""

from __future__ import annotations

import pytest

from chatdigest.errors import OverloadFailure, UpstreamFailure
from chatdigest.summarization.resilient import is_transient_overload, summarize_with_retry

from conftest import DummyLLM, ServiceError


class StatusCodeError(Exception):
    def __init__(self, status_code: int):
        super().__init__("request failed")
        self.status_code = status_code


class TestIsTransientOverload:
    @pytest.mark.parametrize(
        "exc",
        [
            ServiceError(503, "UNAVAILABLE"),
            StatusCodeError(503),
            RuntimeError("The model is overloaded (503)"),
            RuntimeError("UNAVAILABLE: try later"),
            RuntimeError("The model is overloaded. Please try again later."),
        ],
    )
    def test_overload_detected(self, exc):
        assert is_transient_overload(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            ServiceError(400, "INVALID_ARGUMENT"),
            ServiceError(400, "INVALID_ARGUMENT: prompt has 1503 tokens too many"),
            ServiceError(400, "UNAVAILABLE model version"),
            StatusCodeError(429),
            ValueError("bad prompt"),
            RuntimeError("request id 45031 invalid"),
            RuntimeError("prompt has 1503 tokens"),
        ],
    )
    def test_other_errors_not_transient(self, exc):
        assert not is_transient_overload(exc)


class TestSummarizeWithRetry:
    """Tests for summarize_with_retry."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, fake_sleep, metrics):
        llm = DummyLLM("summary")

        result = await summarize_with_retry(llm, "prompt", sleep=fake_sleep, metrics=metrics)

        assert result == "summary"
        assert llm.call_count == 1
        assert fake_sleep.waits_ms == []
        assert metrics.service("gemini").calls == 1

    @pytest.mark.asyncio
    async def test_overload_then_success(self, fake_sleep, progress):
        llm = DummyLLM("ok", errors=[ServiceError(503), ServiceError(503)])

        result = await summarize_with_retry(llm, "prompt", sleep=fake_sleep, progress=progress)

        assert result == "ok"
        assert llm.call_count == 3
        assert fake_sleep.waits_ms == [2000, 4000]
        retries = [e for e in progress.events if e.stage == "summarize_retry"]
        assert [e.detail["attempts_remaining"] for e in retries] == [2, 1]
        assert "Retrying in 2 seconds" in retries[0].message

    @pytest.mark.asyncio
    async def test_every_attempt_overloaded(self, fake_sleep, metrics):
        llm = DummyLLM(errors=[ServiceError(503)] * 3)

        with pytest.raises(OverloadFailure) as excinfo:
            await summarize_with_retry(llm, "prompt", sleep=fake_sleep, metrics=metrics)

        assert excinfo.value.attempts == 3
        assert llm.call_count == 3
        assert fake_sleep.waits_ms == [2000, 4000]
        assert metrics.service("gemini").errors == 3

    @pytest.mark.asyncio
    async def test_three_overloads_with_four_attempts(self, fake_sleep):
        llm = DummyLLM("ok", errors=[ServiceError(503)] * 3)

        result = await summarize_with_retry(llm, "prompt", max_attempts=4, sleep=fake_sleep)

        assert result == "ok"
        assert llm.call_count == 4
        assert fake_sleep.waits_ms == [2000, 4000, 8000]

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self, fake_sleep):
        cause = ServiceError(400, "INVALID_ARGUMENT")
        llm = DummyLLM(errors=[cause])

        with pytest.raises(UpstreamFailure) as excinfo:
            await summarize_with_retry(llm, "prompt", sleep=fake_sleep)

        assert excinfo.value.cause is cause
        assert excinfo.value.status == 400
        assert llm.call_count == 1
        assert fake_sleep.waits_ms == []

    @pytest.mark.asyncio
    async def test_status_wins_over_message_text(self, fake_sleep):
        cause = ServiceError(400, "request id 45031 invalid, 503 in body")
        llm = DummyLLM(errors=[cause])

        with pytest.raises(UpstreamFailure) as excinfo:
            await summarize_with_retry(llm, "prompt", sleep=fake_sleep)

        assert excinfo.value.status == 400
        assert llm.call_count == 1
        assert fake_sleep.waits_ms == []

    @pytest.mark.asyncio
    async def test_non_transient_after_overload(self, fake_sleep):
        llm = DummyLLM(errors=[ServiceError(503), ValueError("quota")])

        with pytest.raises(UpstreamFailure):
            await summarize_with_retry(llm, "prompt", sleep=fake_sleep)

        assert llm.call_count == 2
        assert fake_sleep.waits_ms == [2000]

    @pytest.mark.asyncio
    async def test_custom_backoff(self, fake_sleep):
        llm = DummyLLM("ok", errors=[ServiceError(503)])

        await summarize_with_retry(llm, "prompt", initial_backoff_ms=10, sleep=fake_sleep)

        assert fake_sleep.waits_ms == pytest.approx([10])

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self, fake_sleep):
        with pytest.raises(ValueError):
            await summarize_with_retry(DummyLLM(), "prompt", max_attempts=0, sleep=fake_sleep)
