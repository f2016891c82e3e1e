"""Date-bounded retrieval over a reverse-chronological, cursor-paginated feed.

The posts API has no server-side date filter; it only returns the newest
records first. To cover an arbitrary window we walk backward page by page,
skipping records newer than the window, keeping those inside it, and
stopping at the first page that reaches past the window's start.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from chatdigest.errors import FetchFailure, RangeIncomplete
from chatdigest.messaging.client import MessagingClient
from chatdigest.messaging.models import FetchResult, FetchState, Message, Route, TimeWindow
from chatdigest.messaging.routes import EndpointResolver
from chatdigest.metrics import MetricsRecorder
from chatdigest.progress import NullProgressSink, ProgressSink

_LOG = logging.getLogger(__name__)

MAX_PAGE_SIZE = 250  # API maximum recordCount
DEFAULT_MAX_PAGES = 20
DEFAULT_RECENT_DAYS = 3

_SERVICE = "ringcentral"


def _check_limits(page_size: int, max_pages: int) -> None:
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
    if max_pages < 1:
        raise ValueError(f"max_pages must be at least 1, got {max_pages}")


def _sorted(messages: list[Message]) -> tuple[Message, ...]:
    return tuple(sorted(messages, key=lambda m: m.created_at))


async def fetch_messages(
    client: MessagingClient,
    route: Route,
    window: TimeWindow,
    *,
    page_size: int = MAX_PAGE_SIZE,
    max_pages: int = DEFAULT_MAX_PAGES,
    metrics: MetricsRecorder | None = None,
    progress: ProgressSink | None = None,
) -> FetchResult:
    """Walk the feed backward until ``window`` is covered.

    Returns the in-window messages sorted oldest first. Hitting ``max_pages``
    before the window closes returns what was collected with
    ``range_incomplete`` set.

    Raises:
        FetchFailure: a page request failed. Partial results are dropped.
    """
    _check_limits(page_size, max_pages)
    metrics = metrics or MetricsRecorder()
    progress = progress or NullProgressSink()
    state = FetchState(route=route)

    progress.emit(
        "fetch_start",
        chat_id=route.chat_id,
        message=f"Starting paginated fetch for date range: {window.describe()}",
    )

    while state.pages_processed < max_pages:
        page_index = state.pages_processed + 1
        progress.emit("page_request", chat_id=route.chat_id, page=page_index, cursor=state.cursor)
        timer = metrics.start(f"fetch-page-{page_index}", service=_SERVICE)
        try:
            page = await client.get_page(route.path, record_count=page_size, page_token=state.cursor)
        except Exception as exc:
            timer.stop(error=exc)
            raise FetchFailure(route, page_index, exc) from exc
        timer.stop()
        state.pages_processed = page_index

        if not page.records:
            progress.emit("page_empty", chat_id=route.chat_id, page=page_index)
            break

        in_range = older = 0
        for message in page.records:
            if message.created_at < window.start:
                older += 1
                state.range_exhausted = True
            elif message.created_at <= window.end:
                state.collected.append(message)
                in_range += 1

        progress.emit(
            "page_fetched",
            chat_id=route.chat_id,
            page=page_index,
            records=len(page.records),
            in_range=in_range,
            older=older,
        )

        state.cursor = page.next_cursor
        if state.range_exhausted:
            _LOG.debug("Chat %s: page %d reached past window start", route.chat_id, page_index)
            break
        if state.cursor is None:
            _LOG.debug("Chat %s: end of history at page %d", route.chat_id, page_index)
            break

    range_incomplete = (
        state.pages_processed >= max_pages
        and not state.range_exhausted
        and state.cursor is not None
    )
    if range_incomplete:
        _LOG.warning(
            "%s: reached maximum page limit for chat %s (pages=%d, messages=%d); "
            "results may be incomplete",
            RangeIncomplete.__name__,
            route.chat_id,
            state.pages_processed,
            len(state.collected),
        )
        progress.emit(
            "range_incomplete",
            chat_id=route.chat_id,
            pages=state.pages_processed,
            max_pages=max_pages,
            messages=len(state.collected),
        )

    messages = _sorted(state.collected)
    progress.emit(
        "fetch_complete",
        chat_id=route.chat_id,
        pages=state.pages_processed,
        messages=len(messages),
    )
    return FetchResult(messages, state.pages_processed, range_incomplete)


async def fetch_recent(
    client: MessagingClient,
    route: Route,
    window: TimeWindow,
    *,
    page_size: int = MAX_PAGE_SIZE,
    metrics: MetricsRecorder | None = None,
    progress: ProgressSink | None = None,
) -> FetchResult:
    """Single-page fetch for windows that fit inside the newest page."""
    _check_limits(page_size, 1)
    metrics = metrics or MetricsRecorder()
    progress = progress or NullProgressSink()

    timer = metrics.start(f"fetch-messages-{route.chat_id}", service=_SERVICE)
    try:
        page = await client.get_page(route.path, record_count=page_size)
    except Exception as exc:
        timer.stop(error=exc)
        raise FetchFailure(route, 1, exc) from exc
    timer.stop()

    # The page is newest first; reversing gives ascending order.
    kept = [m for m in page.records if window.contains(m.created_at)]
    kept.reverse()
    progress.emit(
        "page_fetched",
        chat_id=route.chat_id,
        page=1,
        records=len(page.records),
        in_range=len(kept),
    )

    # More history exists and the page never reached the window start.
    range_incomplete = (
        bool(page.records)
        and page.next_cursor is not None
        and all(m.created_at >= window.start for m in page.records)
    )
    if range_incomplete:
        _LOG.warning(
            "%s: single page for chat %s did not reach window start (messages=%d); "
            "results may be incomplete",
            RangeIncomplete.__name__,
            route.chat_id,
            len(kept),
        )
        progress.emit(
            "range_incomplete",
            chat_id=route.chat_id,
            pages=1,
            max_pages=1,
            messages=len(kept),
        )
    return FetchResult(tuple(kept), 1, range_incomplete)


def elapsed_days(start: datetime, now: datetime) -> int:
    """Whole days between ``start`` and ``now``, rounded up."""
    return math.ceil((now - start).total_seconds() / 86400)


async def fetch_messages_smart(
    client: MessagingClient,
    resolver: EndpointResolver,
    chat_id: str,
    window: TimeWindow,
    *,
    now: datetime | None = None,
    page_size: int = MAX_PAGE_SIZE,
    max_pages: int = DEFAULT_MAX_PAGES,
    recent_days: int = DEFAULT_RECENT_DAYS,
    metrics: MetricsRecorder | None = None,
    progress: ProgressSink | None = None,
) -> FetchResult:
    """Resolve the route for ``chat_id`` and pick a fetch strategy."""
    progress = progress or NullProgressSink()
    now = now or datetime.now(timezone.utc)
    route = await resolver.resolve(chat_id)
    days = elapsed_days(window.start, now)

    if days <= recent_days:
        progress.emit("strategy", chat_id=chat_id, strategy="single_page", days_ago=days)
        _LOG.debug("Chat %s: window starts %d day(s) ago, using single-page fetch", chat_id, days)
        return await fetch_recent(
            client, route, window, page_size=page_size, metrics=metrics, progress=progress
        )

    progress.emit("strategy", chat_id=chat_id, strategy="paginated", days_ago=days)
    _LOG.debug("Chat %s: window starts %d day(s) ago, using paginated fetch", chat_id, days)
    return await fetch_messages(
        client,
        route,
        window,
        page_size=page_size,
        max_pages=max_pages,
        metrics=metrics,
        progress=progress,
    )
