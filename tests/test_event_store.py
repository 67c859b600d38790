"""Tests for the JSON-backed event store."""
import json
from dataclasses import replace
from datetime import timedelta

import pytest

from eventbot.models import NotificationKind, SentState
from eventbot.storage.event_store import JsonEventStore, StoreError
from conftest import TODAY


def add(store, title="Board Game Night", day=TODAY, **kw):
    return store.create(title=title, description="Bring a friend", date=day, **kw)


class TestCreateAndQuery:
    def test_new_store_creates_files(self, tmp_path):
        """Test an empty event file and image directory are created on first use."""
        store = JsonEventStore(tmp_path / "data" / "events.json", tmp_path / "data" / "images")
        assert json.loads((tmp_path / "data" / "events.json").read_text()) == []
        assert (tmp_path / "data" / "images").is_dir()
        assert store.list() == []

    def test_create_assigns_unique_ids_and_pending_states(self, store):
        """Test created events get distinct ids and start unsent."""
        a = add(store, "A", time="7 PM", location="Hall")
        b = add(store, "B")

        assert a.id != b.id
        assert a.announcement is SentState.PENDING
        assert a.reminder is SentState.PENDING
        assert a.source == "manual"
        assert a.created_at is not None

    def test_persists_across_instances(self, store, tmp_path):
        """Test a second store on the same file sees written events."""
        created = add(store, time="7:00 PM", location="Library")
        reopened = JsonEventStore(store.path, store.images_dir)

        got = reopened.get(created.id)
        assert got is not None
        assert (got.title, got.date, got.time, got.location) == (created.title, TODAY, "7:00 PM", "Library")

    def test_list_is_sorted_by_date(self, store):
        """Test listing orders by event date."""
        add(store, "later", TODAY + timedelta(days=5))
        add(store, "sooner", TODAY + timedelta(days=1))
        assert [e.title for e in store.list()] == ["sooner", "later"]

    def test_for_date_and_upcoming(self, store):
        """Test date filters."""
        add(store, "past", TODAY - timedelta(days=1))
        add(store, "today", TODAY)
        add(store, "next", TODAY + timedelta(days=2))

        assert [e.title for e in store.for_date(TODAY)] == ["today"]
        assert [e.title for e in store.upcoming(TODAY)] == ["today", "next"]

    def test_find_by_id_then_title(self, store):
        """Test lookup prefers an exact id and falls back to title substrings."""
        quiz = add(store, "Trivia Quiz")
        add(store, "Quiz Bowl")

        assert store.find(quiz.id) == [quiz]
        assert {e.title for e in store.find("quiz")} == {"Trivia Quiz", "Quiz Bowl"}
        assert store.find("karaoke") == []
        assert store.find("   ") == []


class TestUpdate:
    def test_partial_update(self, store):
        """Test only the named fields change."""
        e = add(store, location="Hall")
        updated = store.update(e.id, location="Gym", time="6 PM")

        assert updated.location == "Gym"
        assert updated.time == "6 PM"
        assert updated.title == e.title
        assert store.get(e.id).location == "Gym"

    def test_unknown_id_returns_none(self, store):
        """Test updating a missing event reports not-found without raising."""
        assert store.update("nope", title="x") is None
        assert store.delete("nope") is None

    def test_rejects_non_editable_fields(self, store):
        """Test identity and provenance cannot be changed."""
        e = add(store)
        with pytest.raises(ValueError):
            store.update(e.id, id="other")

    def test_mark_sent_is_idempotent(self, store):
        """Test marking twice leaves the same record."""
        e = add(store)
        first = store.mark_sent(e.id, NotificationKind.ADVANCE)
        second = store.mark_announcement_sent(e.id)

        assert first.announcement is SentState.SENT
        assert second == first
        assert store.get(e.id).reminder is SentState.PENDING

    def test_update_never_resets_sent_flag(self, store):
        """Test a partial update cannot move a flag back to pending."""
        e = add(store)
        store.mark_reminder_sent(e.id)

        after = store.update(e.id, reminder=SentState.PENDING, title="Renamed")
        assert after.reminder is SentState.SENT
        assert after.title == "Renamed"

    def test_replace_can_clear_flags(self, store):
        """Test a full replace is the one way to resend."""
        e = add(store)
        sent = store.mark_announcement_sent(e.id)

        store.replace(replace(sent, announcement=SentState.PENDING))
        assert store.get(e.id).announcement is SentState.PENDING

    def test_changing_image_removes_old_file(self, store):
        """Test the previous image is deleted when a new one is attached."""
        old = store.save_image(b"old", "flyer.png")
        e = add(store, image_path=old)
        new = store.save_image(b"new", "flyer2.png")

        store.update(e.id, image_path=new)

        assert not (store.images_dir / "flyer.png").exists()
        assert (store.images_dir / "flyer2.png").exists()


class TestDeleteAndCleanup:
    def test_delete_removes_event_and_image(self, store):
        """Test deleting an event also removes its image."""
        path = store.save_image(b"png", "poster.png")
        e = add(store, image_path=path)

        removed = store.delete(e.id)

        assert removed.id == e.id
        assert store.get(e.id) is None
        assert not (store.images_dir / "poster.png").exists()

    def test_save_image_strips_directories(self, store):
        """Test an uploaded name cannot escape the image directory."""
        path = store.save_image(b"x", "../../evil.png")
        assert (store.images_dir / "evil.png").exists()
        assert path == str(store.images_dir / "evil.png")

    def test_cleanup_old_events(self, store):
        """Test events older than the retention window are removed."""
        add(store, "ancient", TODAY - timedelta(days=45))
        add(store, "recent", TODAY - timedelta(days=10))
        add(store, "future", TODAY + timedelta(days=3))

        removed = store.cleanup_old_events(TODAY, days_old=30)

        assert [e.title for e in removed] == ["ancient"]
        assert [e.title for e in store.list()] == ["recent", "future"]
        assert store.cleanup_old_events(TODAY, days_old=30) == []


class TestFileHandling:
    def test_corrupt_file_reads_as_empty(self, store):
        """Test unreadable JSON is treated as no events."""
        store.path.write_text("{not json", encoding="utf-8")
        assert JsonEventStore(store.path, store.images_dir).list() == []

    def test_malformed_records_are_skipped(self, store):
        """Test one bad record does not hide the rest."""
        store.path.write_text(
            json.dumps([
                {"id": "ok1", "title": "Fine", "date": TODAY.isoformat()},
                {"id": "bad", "title": "No date"},
                {"id": "bad2", "title": "Bad date", "date": "someday"},
            ]),
            encoding="utf-8",
        )
        events = JsonEventStore(store.path, store.images_dir).list()
        assert [e.id for e in events] == ["ok1"]

    def test_reads_legacy_timestamp_dates_and_flags(self, store):
        """Test full ISO timestamps and boolean sent flags from older files load."""
        store.path.write_text(
            json.dumps([{
                "id": "legacy",
                "title": "Old record",
                "description": "",
                "date": f"{TODAY.isoformat()}T00:00:00.000Z",
                "time": "7 PM",
                "announcementSent": True,
                "reminderSent": False,
            }]),
            encoding="utf-8",
        )
        e = JsonEventStore(store.path, store.images_dir).get("legacy")
        assert e.date == TODAY
        assert e.announcement is SentState.SENT
        assert e.reminder is SentState.PENDING

    def test_write_failure_raises_store_error(self, store, tmp_path):
        """Test an unwritable destination surfaces as StoreError."""
        e = add(store)
        store.list()
        blocked = tmp_path / "blocked"
        blocked.mkdir()
        (blocked / "keep").write_text("x")
        store.path = blocked

        with pytest.raises(StoreError):
            store.update(e.id, title="changed")

    def test_mutation_on_corrupt_file_keeps_data(self, store):
        """Test a change against a truncated file fails and leaves the bytes alone."""
        for i in range(3):
            add(store, f"E{i}")
        original = store.path.read_bytes()
        store.path.write_bytes(original[:-5])
        damaged = store.path.read_bytes()
        reopened = JsonEventStore(store.path, store.images_dir)

        with pytest.raises(StoreError):
            add(reopened, "New")
        with pytest.raises(StoreError):
            reopened.cleanup_old_events(TODAY)

        assert store.path.read_bytes() == damaged
        assert reopened.list() == []

    def test_mutation_with_malformed_record_keeps_data(self, store):
        """Test a change is refused rather than dropping unparseable records."""
        store.path.write_text(
            json.dumps([
                {"id": "ok1", "title": "Fine", "date": TODAY.isoformat()},
                {"id": "bad", "title": "Bad date", "date": "someday"},
            ]),
            encoding="utf-8",
        )
        before = store.path.read_bytes()
        reopened = JsonEventStore(store.path, store.images_dir)

        assert [e.id for e in reopened.list()] == ["ok1"]
        with pytest.raises(StoreError):
            reopened.update("ok1", title="Renamed")
        assert store.path.read_bytes() == before
