from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Literal

EventSource = Literal["manual", "google_sheets"]

class SentState(str, Enum):
    PENDING = "pending"
    SENT = "sent"

    @classmethod
    def from_flag(cls, flag: bool) -> "SentState":
        return cls.SENT if flag else cls.PENDING

class NotificationKind(str, Enum):
    ADVANCE = "advance"
    REMINDER = "reminder"

@dataclass
class Event:
    # Stable identifier, assigned once by the store
    id: str

    title: str
    description: str
    date: date

    # Free-form, parsed on demand ("7 PM", "19:00", "TBA", ...)
    time: str | None = None
    location: str | None = None
    image_path: str | None = None

    announcement: SentState = SentState.PENDING
    reminder: SentState = SentState.PENDING

    created_at: datetime | None = None
    created_by: str | None = None
    source: EventSource | None = None
    row_number: int | None = None

    @property
    def announcement_sent(self) -> bool:
        return self.announcement is SentState.SENT

    @property
    def reminder_sent(self) -> bool:
        return self.reminder is SentState.SENT

    def sent_state(self, kind: NotificationKind) -> SentState:
        return self.announcement if kind is NotificationKind.ADVANCE else self.reminder

@dataclass(frozen=True)
class DueNotification:
    event: Event
    kind: NotificationKind

@dataclass
class DispatchReport:
    sent: list[DueNotification] = field(default_factory=list)
    failed: list[DueNotification] = field(default_factory=list)
    skipped: list[DueNotification] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed) + len(self.skipped)
