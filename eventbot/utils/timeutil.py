from datetime import date, datetime
from zoneinfo import ZoneInfo

def now_local(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))

def to_local(dt: datetime, tz_name: str) -> datetime:
    # treat naive as local already
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.astimezone(ZoneInfo(tz_name))

def local_today(now: datetime, tz_name: str) -> date:
    return to_local(now, tz_name).date()

def days_until(day: date, today: date) -> int:
    return (day - today).days
