"""Tests for the messaging data model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from chatdigest.messaging.models import Message, Page, Route, RouteVariant, TimeWindow, parse_instant

from conftest import utc


class TestParseInstant:
    def test_trailing_z_is_utc(self):
        assert parse_instant("2024-03-01T10:15:30.123Z") == datetime(
            2024, 3, 1, 10, 15, 30, 123000, tzinfo=timezone.utc
        )

    def test_offset_converted_to_utc(self):
        parsed = parse_instant("2024-03-01T12:00:00+02:00")
        assert parsed == utc(2024, 3, 1, 10, 0)
        assert parsed.tzinfo == timezone.utc


class TestTimeWindow:
    def test_contains_is_inclusive(self):
        window = TimeWindow(utc(2024, 3, 1), utc(2024, 3, 2))
        assert window.contains(utc(2024, 3, 1))
        assert window.contains(utc(2024, 3, 2))
        assert not window.contains(utc(2024, 3, 2) + timedelta(microseconds=1))
        assert not window.contains(utc(2024, 3, 1) - timedelta(microseconds=1))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            TimeWindow(utc(2024, 3, 2), utc(2024, 3, 1))

    def test_naive_bounds_rejected(self):
        with pytest.raises(ValueError):
            TimeWindow(datetime(2024, 3, 1), utc(2024, 3, 2))

    def test_single_instant_window(self):
        instant = utc(2024, 3, 1, 12)
        assert TimeWindow(instant, instant).contains(instant)


class TestMessage:
    def test_from_record(self):
        message = Message.from_record(
            {"id": 123, "creatorId": 456, "creationTime": "2024-03-01T10:00:00Z", "text": "hi"}
        )
        assert message == Message("123", "456", utc(2024, 3, 1, 10), "hi")

    def test_missing_text_is_none(self):
        message = Message.from_record({"id": "1", "creatorId": "2", "creationTime": "2024-03-01T10:00:00Z"})
        assert message.text is None


class TestPage:
    def test_from_json_with_cursor(self):
        page = Page.from_json(
            {
                "records": [{"id": "1", "creatorId": "2", "creationTime": "2024-03-01T10:00:00Z"}],
                "navigation": {"nextPageToken": "abc"},
            }
        )
        assert len(page.records) == 1
        assert page.next_cursor == "abc"

    def test_from_json_end_of_history(self):
        page = Page.from_json({"records": [], "navigation": {}})
        assert page.records == ()
        assert page.next_cursor is None


class TestRoute:
    @pytest.mark.parametrize(
        "variant, expected",
        [
            (RouteVariant.TEAMS, "/restapi/v1.0/glip/teams/99/posts"),
            (RouteVariant.CHATS, "/restapi/v1.0/glip/chats/99/posts"),
        ],
    )
    def test_path(self, variant, expected):
        assert Route("99", variant).path == expected
