from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace as dc_replace
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from eventbot.models import Event, NotificationKind, SentState

log = logging.getLogger("storage.events")

# Fields a partial update may touch; id and provenance are fixed at creation.
EDITABLE_FIELDS = ("title", "description", "date", "time", "location", "image_path", "announcement", "reminder")

class StoreError(Exception):
    """Raised when the event file cannot be safely read for a change, or written."""

def _dt_to_str(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None

def _dt_from_str(s: str | None) -> datetime | None:
    if not s:
        return None
    return datetime.fromisoformat(s)

def event_to_dict(e: Event) -> dict[str, Any]:
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "date": e.date.isoformat(),
        "time": e.time,
        "location": e.location,
        "imagePath": e.image_path,
        "announcementSent": e.announcement is SentState.SENT,
        "reminderSent": e.reminder is SentState.SENT,
        "createdAt": _dt_to_str(e.created_at),
        "createdBy": e.created_by,
        "source": e.source,
        "rowNumber": e.row_number,
    }

def event_from_dict(d: dict[str, Any]) -> Event:
    # older records stored full ISO timestamps in "date"
    raw_date = str(d["date"])[:10]
    return Event(
        id=d["id"],
        title=d.get("title") or "",
        description=d.get("description") or "",
        date=date.fromisoformat(raw_date),
        time=d.get("time"),
        location=d.get("location"),
        image_path=d.get("imagePath"),
        announcement=SentState.from_flag(bool(d.get("announcementSent", False))),
        reminder=SentState.from_flag(bool(d.get("reminderSent", False))),
        created_at=_dt_from_str(d.get("createdAt")),
        created_by=d.get("createdBy"),
        source=d.get("source"),
        row_number=d.get("rowNumber"),
    )

class JsonEventStore:
    """
    Events persisted as an ordered JSON list, images in a sibling directory.

    Single writer: every mutation reloads, applies, and rewrites the file,
    then drops the in-memory cache.
    """

    def __init__(self, path: Path, images_dir: Path):
        self.path = path
        self.images_dir = images_dir
        self._cache: list[Event] | None = None
        self._ensure_files_exist()

    def _ensure_files_exist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.images_dir.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])

    def _load(self, strict: bool = False) -> list[Event]:
        """
        Read all events. Queries tolerate a damaged file and see only what
        parses; mutations pass strict=True so a partial read is never written
        back over the file.
        """
        if self._cache is not None:
            return list(self._cache)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8")) or []
            if not isinstance(raw, list):
                raise ValueError("expected a JSON list of events")
        except (OSError, ValueError) as ex:
            if strict:
                raise StoreError(f"Refusing to modify unreadable {self.path}: {ex}") from ex
            log.error("Could not read %s, treating as empty: %s", self.path, ex)
            return []

        events: list[Event] = []
        skipped = 0
        for d in raw:
            try:
                events.append(event_from_dict(d))
            except (KeyError, TypeError, ValueError) as ex:
                record = d.get("id") if isinstance(d, dict) else d
                if strict:
                    raise StoreError(f"Refusing to modify {self.path}, malformed record {record!r}: {ex}") from ex
                log.warning("Skipping malformed event record %r: %s", record, ex)
                skipped += 1

        if not skipped:
            self._cache = events
        return list(events)

    def _write(self, events: list[Event]) -> None:
        payload = [event_to_dict(e) for e in events]
        tmp = self.path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as ex:
            raise StoreError(f"Failed to save events to {self.path}: {ex}") from ex
        finally:
            self._cache = None

    # queries

    def list(self) -> list[Event]:
        return sorted(self._load(), key=lambda e: e.date)

    def for_date(self, day: date) -> list[Event]:
        return [e for e in self._load() if e.date == day]

    def upcoming(self, today: date) -> list[Event]:
        return [e for e in self.list() if e.date >= today]

    def get(self, event_id: str) -> Event | None:
        for e in self._load():
            if e.id == event_id:
                return e
        return None

    def find(self, identifier: str) -> list[Event]:
        """
        Exact id first, then case-insensitive title substring matches.
        """
        exact = self.get(identifier)
        if exact is not None:
            return [exact]
        needle = identifier.strip().lower()
        if not needle:
            return []
        return [e for e in self.list() if needle in e.title.lower()]

    # mutations

    def create(
        self,
        *,
        title: str,
        description: str,
        date: date,
        time: str | None = None,
        location: str | None = None,
        image_path: str | None = None,
        created_by: str | None = None,
        source: str | None = "manual",
        row_number: int | None = None,
    ) -> Event:
        events = self._load(strict=True)
        event = Event(
            id=self._generate_id({e.id for e in events}),
            title=title,
            description=description,
            date=date,
            time=time or None,
            location=location or None,
            image_path=image_path,
            created_at=datetime.now().astimezone(),
            created_by=created_by,
            source=source,
            row_number=row_number,
        )
        events.append(event)
        self._write(events)
        log.info("Event added: %s (%s)", event.title, event.id)
        return event

    def update(self, event_id: str, **changes: Any) -> Event | None:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")

        events = self._load(strict=True)
        for i, current in enumerate(events):
            if current.id != event_id:
                continue

            # Sent states only move forward through a partial update.
            for flag in ("announcement", "reminder"):
                if flag in changes and getattr(current, flag) is SentState.SENT:
                    if changes[flag] is not SentState.SENT:
                        log.warning("Ignoring %s reset on %s; use replace()", flag, event_id)
                    changes.pop(flag)

            if not changes:
                return current

            updated = dc_replace(current, **changes)
            events[i] = updated
            self._write(events)
            if current.image_path and current.image_path != updated.image_path:
                self._delete_image(current.image_path)
            log.info("Event updated: %s (%s)", updated.title, updated.id)
            return updated

        log.warning("update: event not found: %s", event_id)
        return None

    def replace(self, event: Event) -> Event | None:
        """Full replace; the only path that can clear a sent flag."""
        events = self._load(strict=True)
        for i, current in enumerate(events):
            if current.id == event.id:
                events[i] = event
                self._write(events)
                return event
        log.warning("replace: event not found: %s", event.id)
        return None

    def delete(self, event_id: str) -> Event | None:
        events = self._load(strict=True)
        for i, current in enumerate(events):
            if current.id != event_id:
                continue
            del events[i]
            self._write(events)
            self._delete_image(current.image_path)
            log.info("Event deleted: %s (%s)", current.title, current.id)
            return current

        log.warning("delete: event not found: %s", event_id)
        return None

    def mark_sent(self, event_id: str, kind: NotificationKind) -> Event | None:
        field_name = "announcement" if kind is NotificationKind.ADVANCE else "reminder"
        return self.update(event_id, **{field_name: SentState.SENT})

    def mark_announcement_sent(self, event_id: str) -> Event | None:
        return self.mark_sent(event_id, NotificationKind.ADVANCE)

    def mark_reminder_sent(self, event_id: str) -> Event | None:
        return self.mark_sent(event_id, NotificationKind.REMINDER)

    def cleanup_old_events(self, today: date, days_old: int = 30) -> list[Event]:
        cutoff = today - timedelta(days=days_old)
        events = self._load(strict=True)
        keep = [e for e in events if e.date >= cutoff]
        removed = [e for e in events if e.date < cutoff]
        if not removed:
            return []
        self._write(keep)
        for e in removed:
            self._delete_image(e.image_path)
        log.info("Cleaned up %d old events", len(removed))
        return removed

    # images

    def save_image(self, data: bytes, file_name: str) -> str:
        safe_name = Path(file_name).name
        path = self.images_dir / safe_name
        try:
            path.write_bytes(data)
        except OSError as ex:
            raise StoreError(f"Failed to save image {safe_name}: {ex}") from ex
        log.info("Image saved: %s", path)
        return str(path)

    def _delete_image(self, image_path: str | None) -> None:
        if not image_path:
            return
        p = Path(image_path)
        if not p.exists():
            return
        try:
            p.unlink()
            log.info("Deleted image: %s", p)
        except OSError as ex:
            log.error("Error deleting image %s: %s", p, ex)

    @staticmethod
    def _generate_id(taken: set[str]) -> str:
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in taken:
                return candidate
