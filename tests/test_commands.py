"""Tests for command argument parsing."""
from datetime import date

import pytest

from eventbot.bot.discord_bot import parse_edit_changes, parse_event_date


class TestParseEditChanges:
    def test_single_field_form(self):
        """Test `<field> <value>` keeps spaces in the value."""
        assert parse_edit_changes("location Main Hall, room 2") == {"location": "Main Hall, room 2"}

    def test_several_fields(self):
        """Test several field=value pairs, with quoted values, in one command."""
        got = parse_edit_changes('time="7:30 PM" location=Library Title="Book Club"')
        assert got == {"time": "7:30 PM", "location": "Library", "title": "Book Club"}

    def test_empty(self):
        """Test no arguments means no field changes."""
        assert parse_edit_changes("   ") == {}

    @pytest.mark.parametrize(
        "text",
        ["id=abc", "colour blue", "time=", "time=7pm location", "title"],
    )
    def test_rejected(self, text):
        """Test unknown fields, missing values and stray tokens are reported."""
        with pytest.raises(ValueError):
            parse_edit_changes(text)


class TestParseEventDate:
    def test_iso_date(self):
        """Test YYYY-MM-DD parses."""
        assert parse_event_date("2026-11-02") == date(2026, 11, 2)

    @pytest.mark.parametrize("raw", ["11/02/2026", "2026-13-01", "tomorrow"])
    def test_invalid(self, raw):
        """Test other shapes and impossible dates give None."""
        assert parse_event_date(raw) is None
