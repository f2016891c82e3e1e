"""Data model for the messaging feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 timestamp from the API into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive ``[start, end]`` instant range for one report."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.start > self.end:
            raise ValueError(
                f"TimeWindow start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def describe(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True)
class Message:
    id: str
    author_id: str
    created_at: datetime
    text: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Message":
        """Build a message from an upstream post record."""
        return cls(
            id=str(record["id"]),
            author_id=str(record.get("creatorId", "")),
            created_at=parse_instant(record["creationTime"]),
            text=record.get("text") or None,
        )


@dataclass(frozen=True)
class Page:
    records: tuple[Message, ...]
    next_cursor: str | None = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Page":
        records = tuple(Message.from_record(r) for r in payload.get("records") or [])
        navigation = payload.get("navigation") or {}
        return cls(records=records, next_cursor=navigation.get("nextPageToken") or None)


class RouteVariant(Enum):
    """The two URL templates that can serve a conversation's posts."""

    TEAMS = "/restapi/v1.0/glip/teams/{chat_id}/posts"
    CHATS = "/restapi/v1.0/glip/chats/{chat_id}/posts"

    def path_for(self, chat_id: str) -> str:
        return self.value.format(chat_id=chat_id)


@dataclass(frozen=True)
class Route:
    chat_id: str
    variant: RouteVariant

    @property
    def path(self) -> str:
        return self.variant.path_for(self.chat_id)


@dataclass
class FetchState:
    """Mutable pagination state; local to one fetch call."""

    route: Route
    cursor: str | None = None
    pages_processed: int = 0
    collected: list[Message] = field(default_factory=list)
    range_exhausted: bool = False


@dataclass(frozen=True)
class FetchResult:
    messages: tuple[Message, ...]
    pages_processed: int
    range_incomplete: bool = False

    def __len__(self) -> int:
        return len(self.messages)
