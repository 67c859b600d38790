import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

# "7", "7:30", "7 PM", "7:30pm", "19:00"
_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap]m)?$", re.IGNORECASE)

def parse_time_of_day(raw: str | None) -> time | None:
    """
    Parse an event's time-of-day string.

    Returns None for anything that is not H, H:MM or either of those with a
    trailing AM/PM. 12-hour values are normalized (12 AM -> 0, 12 PM -> 12).
    """
    if not raw:
        return None
    m = _TIME_RE.match(raw.strip())
    if not m:
        return None

    hours = int(m.group(1))
    minutes = int(m.group(2) or "0")
    meridiem = (m.group(3) or "").lower()

    if minutes > 59:
        return None

    if meridiem:
        if not 1 <= hours <= 12:
            return None
        if meridiem == "am":
            hours = 0 if hours == 12 else hours
        else:
            hours = 12 if hours == 12 else hours + 12
    elif hours > 23:
        return None

    return time(hour=hours, minute=minutes)

def event_instant(day: date, raw_time: str | None, tz: ZoneInfo) -> datetime | None:
    t = parse_time_of_day(raw_time)
    if t is None:
        return None
    return datetime.combine(day, t, tzinfo=tz)
