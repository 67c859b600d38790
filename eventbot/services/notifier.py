import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from eventbot.models import Event, NotificationKind
from eventbot.utils.text import format_announcement

log = logging.getLogger("services.notifier")

class Channel(ABC):
    @abstractmethod
    async def send(self, text: str, attachment: Path | None = None) -> bool:
        """
        Deliver one message. Returns False when the channel does not exist;
        transport errors may raise and are handled by the Notifier.
        """
        raise NotImplementedError

@dataclass(frozen=True)
class NotifyResult:
    ok: bool
    error: str | None = None

class Notifier:
    def __init__(self, channel: Channel | None, *, timeout_seconds: float = 30.0, templates: dict[str, str] | None = None):
        self.channel = channel
        self.timeout_seconds = timeout_seconds
        self.templates = templates or {}

    def compose(self, event: Event, kind: NotificationKind, today: date) -> tuple[str, Path | None]:
        text = format_announcement(event, kind, today, self.templates)
        attachment = None
        if event.image_path:
            p = Path(event.image_path)
            if p.exists():
                attachment = p
            else:
                log.warning("Image for %s missing on disk: %s", event.id, p)
        return text, attachment

    async def notify(self, event: Event, kind: NotificationKind, today: date) -> NotifyResult:
        if self.channel is None:
            log.error("No announcements channel configured; %s for %s not sent", kind.value, event.id)
            return NotifyResult(False, "channel not configured")

        try:
            text, attachment = self.compose(event, kind, today)
            delivered = await asyncio.wait_for(self.channel.send(text, attachment), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            log.error("Timed out sending %s for %s (%s)", kind.value, event.title, event.id)
            return NotifyResult(False, "timeout")
        except Exception as ex:
            log.exception("Failed sending %s for %s (%s): %s", kind.value, event.title, event.id, ex)
            return NotifyResult(False, f"{type(ex).__name__}: {ex}")

        if not delivered:
            log.error("Announcements channel not available; %s for %s not sent", kind.value, event.id)
            return NotifyResult(False, "channel not found")

        log.info("%s sent for event: %s", kind.value.capitalize(), event.title)
        return NotifyResult(True)
