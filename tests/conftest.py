import asyncio
from datetime import date, datetime, time
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from eventbot.models import Event, SentState
from eventbot.services.notifier import Channel, Notifier
from eventbot.services.policy import PolicyConfig
from eventbot.services.scheduler import AnnouncementScheduler
from eventbot.storage.event_store import JsonEventStore

TZ_NAME = "America/New_York"
TZ = ZoneInfo(TZ_NAME)
TODAY = date(2026, 10, 14)

def at(day: date, hh: int, mm: int = 0) -> datetime:
    return datetime.combine(day, time(hh, mm), tzinfo=TZ)

def make_event(
    event_id: str,
    day: date,
    *,
    time_str: str | None = None,
    title: str | None = None,
    announcement: SentState = SentState.PENDING,
    reminder: SentState = SentState.PENDING,
    image_path: str | None = None,
) -> Event:
    return Event(
        id=event_id,
        title=title or f"Event {event_id}",
        description="A community get-together",
        date=day,
        time=time_str,
        location="Room 101",
        image_path=image_path,
        announcement=announcement,
        reminder=reminder,
    )

class FakeChannel(Channel):
    def __init__(self, *, ok: bool = True, error: Exception | None = None, delay: float = 0.0):
        self.ok = ok
        self.error = error
        self.delay = delay
        self.sent: list[tuple[str, Path | None]] = []

    async def send(self, text: str, attachment: Path | None = None) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.ok:
            self.sent.append((text, attachment))
        return self.ok

class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

@pytest.fixture
def store(tmp_path: Path) -> JsonEventStore:
    return JsonEventStore(tmp_path / "events.json", tmp_path / "images")

@pytest.fixture
def policy() -> PolicyConfig:
    return PolicyConfig(tz_name=TZ_NAME)

@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()

@pytest.fixture
def clock() -> Clock:
    return Clock(at(TODAY, 9))

@pytest.fixture
def scheduler(store: JsonEventStore, channel: FakeChannel, policy: PolicyConfig, clock: Clock) -> AnnouncementScheduler:
    notifier = Notifier(channel, timeout_seconds=1)
    return AnnouncementScheduler(store=store, notifier=notifier, policy=policy, clock=clock)
