"""Tests for message formatting helpers."""
from datetime import date, timedelta

from eventbot.models import DispatchReport, DueNotification, NotificationKind
from eventbot.utils.text import chunk_message, fmt_date, format_announcement, format_dispatch_report
from conftest import TODAY, make_event


class TestFormatAnnouncement:
    def test_advance_copy(self):
        """Test the advance notice names the event, the countdown and the details."""
        e = make_event("e1", TODAY + timedelta(days=7), time_str="7:00 PM", title="Picnic")
        text = format_announcement(e, NotificationKind.ADVANCE, TODAY)

        assert "**Picnic** is coming up in 7 days!" in text
        assert fmt_date(e.date) in text
        assert "Room 101" in text

    def test_singular_day(self):
        """Test a one-day countdown is not pluralized."""
        e = make_event("e1", TODAY + timedelta(days=1), title="Picnic")
        assert "in 1 day!" in format_announcement(e, NotificationKind.ADVANCE, TODAY)

    def test_reminder_copy(self):
        """Test the reminder text and the TBA fallback for a missing time."""
        e = make_event("e1", TODAY, title="Quiz")
        assert format_announcement(e, NotificationKind.REMINDER, TODAY) == (
            "We have our **Quiz** today at **TBA** in **Room 101**. Hope to see you there!"
        )


class TestHelpers:
    def test_fmt_date(self):
        """Test the long human-readable date."""
        assert fmt_date(date(2027, 3, 5)) == "Friday, March 5, 2027"

    def test_chunk_message(self):
        """Test long text is split on line boundaries under the limit."""
        text = "\n".join(f"line {i:03d}" for i in range(50))
        chunks = chunk_message(text, max_len=100)

        assert all(len(c) <= 100 for c in chunks)
        assert "\n".join(chunks) == text

    def test_dispatch_report(self):
        """Test the summary lists sent and failed events."""
        sent = make_event("s", TODAY + timedelta(days=2), title="Sent one")
        failed = make_event("f", TODAY + timedelta(days=3), title="Failed one")
        report = DispatchReport(
            sent=[DueNotification(sent, NotificationKind.ADVANCE)],
            failed=[DueNotification(failed, NotificationKind.ADVANCE)],
        )
        out = format_dispatch_report(report, TODAY)

        assert "Sent one" in out and "sent" in out
        assert "Failed one" in out and "failed" in out
        assert format_dispatch_report(DispatchReport(), TODAY) == "Nothing was sent."
