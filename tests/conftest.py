"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from chatdigest.errors import UpstreamHTTPError
from chatdigest.messaging.models import Message, Page, Route, RouteVariant, TimeWindow
from chatdigest.metrics import MetricsRecorder
from chatdigest.progress import RecordingProgressSink

REQUIRED_ENV = {
    "RC_SERVER": "https://platform.ringcentral.com",
    "RC_CLIENT_ID": "client-id-123",
    "RC_CLIENT_SECRET": "client-secret-abcdef",
    "RC_JWT": "aaa.bbb.ccc",
    "GEMINI_API_KEY": "gemini-key-0123456789",
}


def utc(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def make_message(msg_id: str, created_at: datetime, text: str | None = "hello", author: str = "42") -> Message:
    return Message(id=msg_id, author_id=author, created_at=created_at, text=text)


def descending_pages(newest: datetime, count: int, per_page: int, step: timedelta = timedelta(minutes=1)) -> list[Page]:
    """``count`` messages going back from ``newest``, split into cursor-linked pages."""
    messages = [make_message(f"m{i}", newest - step * i) for i in range(count)]
    pages = []
    for start in range(0, count, per_page):
        chunk = tuple(messages[start:start + per_page])
        has_more = start + per_page < count
        pages.append(Page(chunk, f"cursor-{start + per_page}" if has_more else None))
    return pages


class FakeMessagingClient:
    """In-memory stand-in for the RingCentral client.

    ``pages`` are served in order for the paginated path; ``probe_error``
    is raised for the teams probe (``recordCount=1``).
    """

    def __init__(
        self,
        pages: list[Page] | None = None,
        *,
        probe_error: BaseException | None = None,
        page_errors: dict[int, BaseException] | None = None,
        people: dict[str, dict[str, Any]] | None = None,
        login_error: BaseException | None = None,
    ):
        self.pages = list(pages or [])
        self.probe_error = probe_error
        self.page_errors = dict(page_errors or {})
        self.people = dict(people or {})
        self.login_error = login_error
        self.calls: list[tuple[str, int, str | None]] = []
        self.person_calls: list[str] = []
        self.logged_in_with: str | None = None
        self.closed = False

    @property
    def page_calls(self) -> list[tuple[str, int, str | None]]:
        return [c for c in self.calls if c[1] != 1]

    async def login(self, jwt: str) -> None:
        if self.login_error is not None:
            raise self.login_error
        self.logged_in_with = jwt

    async def close(self) -> None:
        self.closed = True

    async def get_page(self, path: str, record_count: int, page_token: str | None = None) -> Page:
        self.calls.append((path, record_count, page_token))
        if record_count == 1:
            if self.probe_error is not None:
                raise self.probe_error
            return Page(tuple(self.pages[0].records[:1]) if self.pages else ())
        index = len(self.page_calls) - 1
        if index in self.page_errors:
            raise self.page_errors[index]
        if index >= len(self.pages):
            return Page(())
        return self.pages[index]

    async def get_person(self, person_id: str) -> dict[str, Any]:
        self.person_calls.append(person_id)
        if person_id not in self.people:
            raise UpstreamHTTPError(404, "GET", f"/restapi/v1.0/glip/persons/{person_id}")
        return self.people[person_id]

    async def get_current_extension(self) -> dict[str, Any]:
        return {"id": 1, "name": "Test User"}


class DummyLLM:
    """Dummy LLM that returns predictable responses for testing."""

    def __init__(self, response: str = "## Daily Case/Issue Summary\n* INC-1: fixed.\n", errors=None):
        self.response = response
        self.errors = list(errors or [])
        self.call_count = 0
        self.last_prompt = None

    async def generate(self, prompt: str) -> str:
        self.call_count += 1
        self.last_prompt = prompt
        if self.errors:
            raise self.errors.pop(0)
        return self.response


class ServiceError(Exception):
    """Mimics SDK errors that carry an HTTP status in ``code``."""

    def __init__(self, code: int, message: str = "error"):
        super().__init__(f"{code} {message}")
        self.code = code


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.waits_ms: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits_ms.append(seconds * 1000)


@pytest.fixture
def teams_route():
    return Route("7595909126", RouteVariant.TEAMS)


@pytest.fixture
def window():
    return TimeWindow(utc(2024, 3, 1, 0, 0), utc(2024, 3, 1, 23, 59))


@pytest.fixture
def metrics():
    return MetricsRecorder()


@pytest.fixture
def progress():
    return RecordingProgressSink()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def dummy_llm():
    return DummyLLM()


@pytest.fixture
def env_vars(tmp_path):
    """A complete environment pointing reports and logs into tmp_path."""
    return {
        **REQUIRED_ENV,
        "REPORTS_DIR": str(tmp_path / "reports"),
        "LOGS_DIR": str(tmp_path / "logs"),
    }
