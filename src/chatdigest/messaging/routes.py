"""Decide which route variant serves a conversation's history.

RingCentral exposes team conversations under ``/glip/teams`` and direct or
group chats under ``/glip/chats``. There is no lookup for which one applies,
so we probe ``teams`` with a one-record request and treat a 404 as the
signal to use ``chats``.
"""

from __future__ import annotations

import logging

from chatdigest.errors import ResolutionFailure, UpstreamHTTPError
from chatdigest.messaging.client import MessagingClient
from chatdigest.messaging.models import Route, RouteVariant
from chatdigest.metrics import MetricsRecorder
from chatdigest.progress import NullProgressSink, ProgressSink

_LOG = logging.getLogger(__name__)

PROBE_VARIANT = RouteVariant.TEAMS
FALLBACK_VARIANT = RouteVariant.CHATS


class RouteCache:
    """Per-conversation route classification, valid for one report job.

    Concurrent writers for the same chat id store the same answer, so last
    writer wins without harm.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RouteVariant] = {}

    def get(self, chat_id: str) -> RouteVariant | None:
        return self._entries.get(chat_id)

    def put(self, chat_id: str, variant: RouteVariant) -> None:
        self._entries[chat_id] = variant

    def discard(self, chat_id: str) -> None:
        self._entries.pop(chat_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class EndpointResolver:
    def __init__(
        self,
        client: MessagingClient,
        cache: RouteCache | None = None,
        *,
        metrics: MetricsRecorder | None = None,
        progress: ProgressSink | None = None,
    ) -> None:
        self._client = client
        self._cache = cache if cache is not None else RouteCache()
        self._metrics = metrics or MetricsRecorder()
        self._progress = progress or NullProgressSink()

    async def resolve(self, chat_id: str) -> Route:
        """Return the live route for ``chat_id``.

        Raises:
            ResolutionFailure: the probe failed with anything other than 404.
        """
        cached = self._cache.get(chat_id)
        if cached is not None:
            _LOG.debug("Route cache hit for chat %s: %s", chat_id, cached.name)
            return Route(chat_id, cached)

        probe_path = PROBE_VARIANT.path_for(chat_id)
        self._progress.emit("route_probe", chat_id=chat_id, path=probe_path)
        timer = self._metrics.start(f"api-endpoint-discovery-{chat_id}")
        try:
            await self._client.get_page(probe_path, record_count=1)
        except UpstreamHTTPError as exc:
            timer.stop()
            if not exc.is_not_found:
                _LOG.warning("Endpoint discovery failed for chat %s: %s", chat_id, exc)
                raise ResolutionFailure(chat_id, exc) from exc
            variant = FALLBACK_VARIANT
            self._progress.emit(
                "route_fallback",
                chat_id=chat_id,
                message=f"'teams' endpoint not found. Using 'chats' endpoint for {chat_id}.",
                path=variant.path_for(chat_id),
            )
        except Exception as exc:
            timer.stop()
            _LOG.warning("Endpoint discovery failed for chat %s: %s", chat_id, exc)
            raise ResolutionFailure(chat_id, exc) from exc
        else:
            timer.stop()
            variant = PROBE_VARIANT

        self._cache.put(chat_id, variant)
        _LOG.info("Resolved chat %s to %s route", chat_id, variant.name.lower())
        self._progress.emit("route_resolved", chat_id=chat_id, path=variant.path_for(chat_id))
        return Route(chat_id, variant)

    def invalidate(self, chat_id: str) -> None:
        self._cache.discard(chat_id)
