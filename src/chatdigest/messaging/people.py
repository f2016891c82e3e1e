"""Display-name lookup for message authors."""

from __future__ import annotations

import logging

from chatdigest.messaging.client import MessagingClient
from chatdigest.metrics import MetricsRecorder

_LOG = logging.getLogger(__name__)


def fallback_name(person_id: str) -> str:
    return f"User ({person_id})"


class PersonDirectory:
    """Caches ``person_id -> "First Last"`` for the life of the process.

    A failed lookup is not fatal: it logs a warning and returns a placeholder
    name, which is not cached so a later job can retry.
    """

    def __init__(
        self,
        client: MessagingClient,
        cache: dict[str, str] | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._client = client
        self._cache = cache if cache is not None else {}
        self._metrics = metrics or MetricsRecorder()

    async def name_for(self, person_id: str) -> str:
        if person_id in self._cache:
            return self._cache[person_id]

        timer = self._metrics.start(f"get-person-{person_id}")
        try:
            payload = await self._client.get_person(person_id)
        except Exception as exc:  # noqa: BLE001
            timer.stop(error=exc)
            _LOG.warning("Failed to get person name for %s: %s", person_id, exc)
            return fallback_name(person_id)
        timer.stop()

        name = " ".join(
            part for part in (payload.get("firstName"), payload.get("lastName")) if part
        ) or fallback_name(person_id)
        self._cache[person_id] = name
        return name
