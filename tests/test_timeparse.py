"""Unit tests for the time-of-day parser."""
from datetime import date, datetime, time

import pytest

from eventbot.utils.timeparse import event_instant, parse_time_of_day
from conftest import TZ


class TestParseTimeOfDay:
    """Accepted shapes: H, H:MM, optionally followed by AM/PM."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("7", time(7, 0)),
            ("19:00", time(19, 0)),
            ("7:00 PM", time(19, 0)),
            ("7pm", time(19, 0)),
            ("  9:05 am ", time(9, 5)),
            ("12 PM", time(12, 0)),
            ("12 AM", time(0, 0)),
            ("12:30 am", time(0, 30)),
            ("0:00", time(0, 0)),
            ("11:59 PM", time(23, 59)),
        ],
    )
    def test_valid_times(self, raw, expected):
        """Test well-formed strings normalize to 24-hour times."""
        assert parse_time_of_day(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, "", "TBA", "tomorrow night", "13:61", "24:00", "13 PM", "0 AM", "7:5", "7.30", "noon", "7:00 PM EST"],
    )
    def test_malformed_times_yield_none(self, raw):
        """Test malformed input returns None instead of raising."""
        assert parse_time_of_day(raw) is None


class TestEventInstant:
    def test_combines_date_and_time_in_zone(self):
        """Test the event start is a tz-aware local instant."""
        start = event_instant(date(2026, 10, 14), "7:00 PM", TZ)
        assert start == datetime(2026, 10, 14, 19, 0, tzinfo=TZ)

    def test_unparseable_time(self):
        """Test no instant is built for an unparseable time."""
        assert event_instant(date(2026, 10, 14), "after lunch", TZ) is None
