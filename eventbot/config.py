import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

def _get_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")

def _get_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return int(v)

def _get_period_minutes(name: str, default: int) -> int:
    # must map onto a cron step: */n minutes, or */h hours
    v = _get_int(name, default)
    if 1 <= v <= 59 or (v % 60 == 0 and 1 <= v // 60 <= 23):
        return v
    raise RuntimeError(f"{name} must be 1-59 or a whole number of hours up to 23h, got {v}")

def _get_time(name: str, default: str) -> time:
    raw = (os.getenv(name) or default).strip()
    try:
        hh, mm = raw.split(":", 1)
        return time(hour=int(hh), minute=int(mm))
    except ValueError:
        raise RuntimeError(f"{name} must look like HH:MM, got {raw!r}")

def _get_channel_id(name: str, required: bool) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        if required:
            raise RuntimeError(f"{name} is required")
        return None
    if not raw.isdigit():
        raise RuntimeError(f"{name} must be an integer")
    return int(raw)

@dataclass(frozen=True)
class Settings:
    discord_token: str
    announcements_channel_id: int
    command_channel_id: int | None

    timezone: str
    data_dir: Path

    days_ahead: int
    advance_trigger_time: time
    advance_cutoff_time: time

    reminder_lead_minutes: int
    reminder_tolerance_minutes: int
    reminder_check_minutes: int
    reminder_catchup_grace_minutes: int

    catch_up_enabled: bool
    catch_up_minutes: int

    send_timeout_seconds: int
    selection_timeout_seconds: int
    cleanup_days: int

    google_sheets_id: str | None
    google_sheets_range: str

    messages_path: Path

    health_host: str
    health_port: int

    @property
    def events_path(self) -> Path:
        return self.data_dir / "events.json"

    @property
    def images_dir(self) -> Path:
        return self.data_dir / "images"

def load_settings() -> Settings:
    load_dotenv()
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_BOT_TOKEN is required")

    data_dir = Path(os.getenv("DATA_DIR", "./data")).resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    return Settings(
        discord_token=token,
        announcements_channel_id=_get_channel_id("ANNOUNCEMENTS_CHANNEL_ID", required=True),
        command_channel_id=_get_channel_id("COMMAND_CHANNEL_ID", required=False),
        timezone=os.getenv("TIMEZONE", "America/New_York"),
        data_dir=data_dir,
        days_ahead=_get_int("ANNOUNCEMENT_DAYS_AHEAD", 7),
        advance_trigger_time=_get_time("ADVANCE_TRIGGER_TIME", "09:00"),
        advance_cutoff_time=_get_time("ADVANCE_CUTOFF_TIME", "09:00"),
        reminder_lead_minutes=_get_int("REMINDER_LEAD_MINUTES", 180),
        reminder_tolerance_minutes=_get_int("REMINDER_TOLERANCE_MINUTES", 15),
        reminder_check_minutes=_get_period_minutes("REMINDER_CHECK_MINUTES", 15),
        reminder_catchup_grace_minutes=_get_int("REMINDER_CATCHUP_GRACE_MINUTES", 60),
        catch_up_enabled=_get_bool("CATCH_UP_ENABLED", True),
        catch_up_minutes=_get_period_minutes("CATCH_UP_MINUTES", 60),
        send_timeout_seconds=_get_int("SEND_TIMEOUT_SECONDS", 30),
        selection_timeout_seconds=_get_int("SELECTION_TIMEOUT_SECONDS", 60),
        cleanup_days=_get_int("CLEANUP_DAYS", 30),
        google_sheets_id=os.getenv("GOOGLE_SHEETS_ID", "").strip() or None,
        google_sheets_range=os.getenv("GOOGLE_SHEETS_RANGE", "A2:E100").strip(),
        messages_path=Path(os.getenv("MESSAGES_PATH", "./messages.yaml")),
        health_host=os.getenv("HEALTH_HOST", "0.0.0.0"),
        health_port=_get_int("HEALTH_PORT", 8080),
    )

def load_message_templates(path: Path) -> dict[str, str]:
    """
    Optional YAML overrides for the announcement copy:

        messages:
          advance: "..."
          reminder: "..."

    A missing file means the built-in templates are used.
    """
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}
    messages = raw.get("messages", {}) or {}
    return {k: str(v) for k, v in messages.items() if k in ("advance", "reminder") and v}
