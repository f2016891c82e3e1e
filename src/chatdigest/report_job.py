"""End-to-end report generation for one request.

The job enforces a strict order:
1) Validate configuration
2) Log in to RingCentral
3) Fetch each requested chat over the window (one at a time)
4) Summarize all conversations in a single Gemini call
5) Save the markdown report and render HTML

Progress is reported through a ``ProgressSink``. ``status``, ``report``,
``error`` and ``done`` events are user-facing; everything else is detail.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol, Sequence

from chatdigest.config_validator import ConfigValidator
from chatdigest.context import RuntimeContext
from chatdigest.errors import ChatDigestError, ConfigError, LoginFailure
from chatdigest.messaging.client import MessagingClient, RingCentralClient
from chatdigest.messaging.fetcher import fetch_messages_smart
from chatdigest.messaging.models import TimeWindow
from chatdigest.messaging.people import PersonDirectory
from chatdigest.messaging.routes import EndpointResolver
from chatdigest.progress import ProgressSink
from chatdigest.reports import SavedReport, write_report
from chatdigest.settings import Settings, group_name_for
from chatdigest.summarization import Conversation, LLMProtocol, Summarizer
from chatdigest.summarization.resilient import Sleep
from chatdigest.text_generators import get_text_generator

_LOG = logging.getLogger(__name__)


class SessionClient(MessagingClient, Protocol):
    """A messaging client that can log in and be closed."""

    async def login(self, jwt: str) -> None:
        ...

    async def close(self) -> None:
        ...


ClientFactory = Callable[[Settings], SessionClient]
GeneratorFactory = Callable[[Settings], LLMProtocol]


def _default_client(settings: Settings) -> SessionClient:
    return RingCentralClient(settings.rc_server, settings.rc_client_id, settings.rc_client_secret)


def _default_generator(settings: Settings) -> LLMProtocol:
    return get_text_generator("gemini", settings.gemini_model, api_key=settings.gemini_api_key)


def _parse_instant(date_part: str, time_part: str, label: str) -> datetime:
    try:
        parsed = datetime.strptime(f"{date_part}T{time_part}", "%Y-%m-%dT%H:%M")
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {label} date/time: {date_part!r} {time_part!r}") from None
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ReportRequest:
    chat_ids: tuple[str, ...]
    window: TimeWindow
    debug: bool = False

    @classmethod
    def from_query(
        cls,
        chat_ids: Sequence[str],
        date_from: str,
        time_from: str,
        date_to: str,
        time_to: str,
        *,
        debug: bool = False,
    ) -> "ReportRequest":
        """Build a request from form values (dates ``YYYY-MM-DD``, times ``HH:MM``, UTC)."""
        ids = tuple(c.strip() for c in chat_ids if c and c.strip())
        if not ids:
            raise ConfigError("No Chat ID provided.")
        start = _parse_instant(date_from, time_from, "start")
        end = _parse_instant(date_to, time_to, "end")
        try:
            window = TimeWindow(start, end)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        return cls(chat_ids=ids, window=window, debug=debug)


async def generate_report(
    request: ReportRequest,
    *,
    settings: Settings,
    context: RuntimeContext,
    progress: ProgressSink,
    validator: ConfigValidator | None = None,
    client_factory: ClientFactory = _default_client,
    generator_factory: GeneratorFactory = _default_generator,
    now: datetime | None = None,
    sleep: Sleep = asyncio.sleep,
) -> SavedReport | None:
    """Run one report job. Returns ``None`` when no messages were found."""
    metrics = context.metrics
    progress.emit("status", message="Validating configuration...")
    (validator or ConfigValidator()).validate_and_raise()

    # Route classifications are revalidated once per job.
    context.route_cache.clear()

    progress.emit("status", message="Initializing SDKs...")
    client = client_factory(settings)
    try:
        progress.emit("status", message="Logging into RingCentral...")
        timer = metrics.start("rc-login", service="ringcentral")
        try:
            await client.login(settings.rc_jwt)
        except Exception as exc:
            timer.stop(error=exc)
            raise LoginFailure(exc) from exc
        timer.stop()
        progress.emit("status", message="Successfully logged in!")

        _LOG.info(
            "Report parameters: window=%s chats=%d debug=%s",
            request.window.describe(),
            len(request.chat_ids),
            request.debug,
        )

        resolver = EndpointResolver(
            client, context.route_cache, metrics=metrics, progress=progress
        )
        conversations: list[Conversation] = []
        for chat_id in request.chat_ids:
            group_name = group_name_for(chat_id)
            progress.emit("status", message=f"Fetching messages from {group_name}...")
            with metrics.timed(f"fetch-{chat_id}"):
                result = await fetch_messages_smart(
                    client,
                    resolver,
                    chat_id,
                    request.window,
                    now=now,
                    page_size=settings.page_size,
                    max_pages=settings.max_pages,
                    recent_days=settings.recent_days,
                    metrics=metrics,
                    progress=progress,
                )
            _LOG.info("Messages fetched: group=%s chat=%s count=%d", group_name, chat_id, len(result))
            note = " (page limit reached, range may be incomplete)" if result.range_incomplete else ""
            progress.emit("status", message=f"Found {len(result)} messages in {group_name}.{note}")
            if result.messages:
                conversations.append(Conversation(group_name, chat_id, result.messages))

        if not conversations:
            _LOG.info("No messages found in date range")
            progress.emit("status", message="No new messages found in any selected groups.")
            progress.emit("done")
            return None

        progress.emit("status", message="Analyzing conversations with Gemini AI...")
        summarizer = Summarizer(
            generator_factory(settings),
            PersonDirectory(client, context.person_names, metrics),
            max_attempts=settings.max_attempts,
            initial_backoff_ms=settings.initial_backoff_ms,
            metrics=metrics,
            progress=progress,
            sleep=sleep,
        )
        with metrics.timed("gemini-analysis"):
            summary = await summarizer.summarize(conversations)
        progress.emit("status", message="Analysis complete.")
    finally:
        await client.close()

    progress.emit("status", message="Saving report file...")
    saved = write_report(summary, request.window, settings.reports_dir, now=now)
    progress.emit("status", message=f"Report saved to {saved.path}")
    progress.emit("report", message="Report content generated.", html=saved.html, markdown=saved.markdown)
    progress.emit("done")
    return saved


async def run_report_job(request: ReportRequest, *, context: RuntimeContext, progress: ProgressSink, **kwargs) -> SavedReport | None:
    """Run :func:`generate_report`, turning failures into an ``error`` event."""
    try:
        saved = await generate_report(request, context=context, progress=progress, **kwargs)
    except ChatDigestError as exc:
        _LOG.error("Report generation failed: %s: %s", type(exc).__name__, exc)
        context.metrics.record_failure()
        progress.emit("error", message=type(exc).__name__, details=str(exc))
        return None
    except Exception as exc:  # noqa: BLE001
        _LOG.exception("Report generation failed unexpectedly")
        context.metrics.record_failure()
        progress.emit("error", message="InternalError", details=str(exc))
        return None
    return saved
