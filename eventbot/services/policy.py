import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable
from zoneinfo import ZoneInfo

from eventbot.models import DueNotification, Event, NotificationKind, SentState
from eventbot.utils.timeparse import event_instant

log = logging.getLogger("services.policy")

class Mode(str, Enum):
    SCHEDULED = "scheduled"
    CATCH_UP = "catch_up"

@dataclass(frozen=True)
class PolicyConfig:
    tz_name: str = "America/New_York"
    days_ahead: int = 7
    advance_cutoff: time = time(9, 0)

    reminder_lead: timedelta = timedelta(hours=3)
    reminder_tolerance: timedelta = timedelta(minutes=15)
    reminder_catchup_grace: timedelta = timedelta(hours=1)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.tz_name)

def evaluate(
    now: datetime,
    events: Iterable[Event],
    config: PolicyConfig,
    mode: Mode,
    kinds: Iterable[NotificationKind] = (NotificationKind.ADVANCE, NotificationKind.REMINDER),
) -> list[DueNotification]:
    """
    Decide which notifications are due at `now`. Pure: events are never mutated.

    Scheduled mode is what the regular ticks run; catch-up mode widens the
    windows so sends missed during downtime are recovered.
    """
    events = list(events)
    kinds = set(kinds)
    local_now = now.astimezone(config.tz)

    due: list[DueNotification] = []
    if NotificationKind.ADVANCE in kinds:
        due.extend(DueNotification(e, NotificationKind.ADVANCE) for e in events if advance_due(e, local_now, config, mode))
    if NotificationKind.REMINDER in kinds:
        due.extend(DueNotification(e, NotificationKind.REMINDER) for e in events if reminder_due(e, local_now, config, mode))

    # stable: same-date entries keep store order
    due.sort(key=lambda d: d.event.date)
    return due

def advance_due(e: Event, local_now: datetime, config: PolicyConfig, mode: Mode) -> bool:
    if e.announcement is SentState.SENT:
        return False

    today = local_now.date()
    if e.date <= today:
        return False

    if mode is Mode.SCHEDULED:
        return e.date == today + timedelta(days=config.days_ahead)

    cutoff = datetime.combine(today, config.advance_cutoff, tzinfo=config.tz)
    if local_now < cutoff:
        return False
    return e.date <= today + timedelta(days=config.days_ahead)

def reminder_due(e: Event, local_now: datetime, config: PolicyConfig, mode: Mode) -> bool:
    if e.reminder is SentState.SENT:
        return False

    today = local_now.date()
    if mode is Mode.SCHEDULED:
        if e.date != today:
            return False
    elif not (today - timedelta(days=1) <= e.date <= today):
        return False

    starts_at = event_instant(e.date, e.time, config.tz)
    if starts_at is None:
        log.info("Skipping reminder for %s (%s): unparseable time %r", e.title, e.id, e.time)
        return False

    # same-zone datetime arithmetic is wall-clock; windows are real durations
    starts_at = starts_at.astimezone(timezone.utc)
    now_utc = local_now.astimezone(timezone.utc)

    if mode is Mode.SCHEDULED:
        opens = starts_at - config.reminder_lead - config.reminder_tolerance
        closes = starts_at - config.reminder_lead + config.reminder_tolerance
    else:
        opens = starts_at - config.reminder_lead
        closes = starts_at + config.reminder_catchup_grace

    return opens < now_utc <= closes
