"""Tests for end-to-end report generation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from chatdigest.config_validator import ConfigValidator
from chatdigest.context import RuntimeContext
from chatdigest.errors import ConfigError, UpstreamHTTPError
from chatdigest.messaging.models import Page, RouteVariant, TimeWindow
from chatdigest.report_job import ReportRequest, _default_generator, generate_report, run_report_job
from chatdigest.settings import Settings
from chatdigest.text_generators import GeminiTextGenerator

from conftest import DummyLLM, FakeMessagingClient, ServiceError, descending_pages, utc

NOW = utc(2024, 3, 1, 18, 0)
WINDOW = TimeWindow(utc(2024, 3, 1, 9, 0), utc(2024, 3, 1, 17, 0))


@pytest.fixture
def settings(env_vars):
    return Settings.from_env(env_vars)


@pytest.fixture
def validator(env_vars, tmp_path):
    return ConfigValidator(env_vars, env_file=tmp_path / ".env")


@pytest.fixture
def client():
    return FakeMessagingClient(
        descending_pages(utc(2024, 3, 1, 16, 0), 20, 250, step=timedelta(minutes=10)),
        people={"42": {"firstName": "Ada", "lastName": "Lovelace"}},
    )


def _run_kwargs(settings, validator, client, llm, fake_sleep):
    return dict(
        settings=settings,
        validator=validator,
        client_factory=lambda s: client,
        generator_factory=lambda s: llm,
        now=NOW,
        sleep=fake_sleep,
    )


class TestReportRequest:
    def test_from_query(self):
        request = ReportRequest.from_query([" 1 ", "", "2"], "2024-03-01", "09:00", "2024-03-02", "17:30")

        assert request.chat_ids == ("1", "2")
        assert request.window.start == utc(2024, 3, 1, 9, 0)
        assert request.window.end == utc(2024, 3, 2, 17, 30)

    def test_requires_chat(self):
        with pytest.raises(ConfigError, match="No Chat ID"):
            ReportRequest.from_query([], "2024-03-01", "09:00", "2024-03-01", "10:00")

    def test_bad_date(self):
        with pytest.raises(ConfigError, match="start"):
            ReportRequest.from_query(["1"], "03/01/2024", "09:00", "2024-03-01", "10:00")

    def test_reversed_window(self):
        with pytest.raises(ConfigError):
            ReportRequest.from_query(["1"], "2024-03-02", "09:00", "2024-03-01", "10:00")


class TestGenerateReport:
    """Tests for generate_report."""

    @pytest.mark.asyncio
    async def test_full_run(self, settings, validator, client, dummy_llm, fake_sleep, progress):
        context = RuntimeContext()
        request = ReportRequest(("7595909126",), WINDOW)

        saved = await generate_report(
            request, context=context, progress=progress,
            **_run_kwargs(settings, validator, client, dummy_llm, fake_sleep),
        )

        assert saved is not None
        assert saved.path.name == "Analysis-03-01-2024-09-00.md"
        assert saved.path.parent.as_posix().endswith("reports")
        assert "INC-1: fixed." in saved.markdown
        assert client.logged_in_with == "aaa.bbb.ccc"
        assert client.closed
        assert "--- START OF CONVERSATION FROM GROUP: Global CC TAM ---" in dummy_llm.last_prompt
        assert "Ada Lovelace" in dummy_llm.last_prompt
        assert progress.stages()[-2:] == ["report", "done"]
        report_event = progress.events[-2]
        assert report_event.detail["markdown"] == saved.markdown
        assert context.route_cache.get("7595909126") is RouteVariant.TEAMS

    @pytest.mark.asyncio
    async def test_no_messages(self, settings, validator, dummy_llm, fake_sleep, progress):
        client = FakeMessagingClient([Page(())])

        saved = await generate_report(
            ReportRequest(("1",), WINDOW), context=RuntimeContext(), progress=progress,
            **_run_kwargs(settings, validator, client, dummy_llm, fake_sleep),
        )

        assert saved is None
        assert dummy_llm.call_count == 0
        assert progress.stages()[-1] == "done"
        assert "report" not in progress.stages()

    @pytest.mark.asyncio
    async def test_route_cache_cleared_per_job(self, settings, validator, client, dummy_llm, fake_sleep, progress):
        context = RuntimeContext()
        context.route_cache.put("7595909126", RouteVariant.CHATS)

        await generate_report(
            ReportRequest(("7595909126",), WINDOW), context=context, progress=progress,
            **_run_kwargs(settings, validator, client, dummy_llm, fake_sleep),
        )

        assert client.calls[0] == (RouteVariant.TEAMS.path_for("7595909126"), 1, None)


class TestRunReportJob:
    """Failures become error events instead of exceptions."""

    @pytest.mark.asyncio
    async def test_login_failure(self, settings, validator, dummy_llm, fake_sleep, progress):
        client = FakeMessagingClient(login_error=UpstreamHTTPError(401, "POST", "/restapi/oauth/token"))
        context = RuntimeContext()

        result = await run_report_job(
            ReportRequest(("1",), WINDOW), context=context, progress=progress,
            **_run_kwargs(settings, validator, client, dummy_llm, fake_sleep),
        )

        assert result is None
        error = progress.events[-1]
        assert error.stage == "error"
        assert error.detail["message"] == "LoginFailure"
        assert "HTTP 401" in error.detail["details"]
        assert client.closed
        assert context.metrics.error_count == 1

    @pytest.mark.asyncio
    async def test_invalid_configuration(self, env_vars, tmp_path, settings, client, dummy_llm, fake_sleep, progress):
        del env_vars["RC_CLIENT_ID"]
        validator = ConfigValidator(env_vars, env_file=tmp_path / ".env")

        await run_report_job(
            ReportRequest(("1",), WINDOW), context=RuntimeContext(), progress=progress,
            **_run_kwargs(settings, validator, client, dummy_llm, fake_sleep),
        )

        assert progress.events[-1].detail["message"] == "ConfigError"
        assert client.logged_in_with is None

    @pytest.mark.asyncio
    async def test_summarizer_overload(self, settings, validator, client, fake_sleep, progress):
        llm = DummyLLM(errors=[ServiceError(503)] * 3)

        result = await run_report_job(
            ReportRequest(("7595909126",), WINDOW), context=RuntimeContext(), progress=progress,
            **_run_kwargs(settings, validator, client, llm, fake_sleep),
        )

        assert result is None
        assert llm.call_count == 3
        assert fake_sleep.waits_ms == [2000, 4000]
        assert progress.stages().count("summarize_retry") == 2
        assert progress.events[-1].detail["message"] == "OverloadFailure"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, settings, validator, client, fake_sleep, progress):
        llm = DummyLLM()

        def broken_factory(s):
            raise RuntimeError("sdk init failed")

        kwargs = _run_kwargs(settings, validator, client, llm, fake_sleep)
        kwargs["generator_factory"] = broken_factory
        await run_report_job(
            ReportRequest(("7595909126",), WINDOW), context=RuntimeContext(), progress=progress, **kwargs
        )

        assert progress.events[-1].detail == {"message": "InternalError", "details": "sdk init failed"}
        assert client.closed


def test_default_generator_uses_configured_gemini_model(env_vars):
    settings = Settings.from_env({**env_vars, "GEMINI_MODEL": "gemini-2.0-flash"})

    generator = _default_generator(settings)

    assert isinstance(generator, GeminiTextGenerator)
    assert generator.model == "gemini-2.0-flash"
