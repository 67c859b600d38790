import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Union

from eventbot.models import DispatchReport, DueNotification, Event, NotificationKind, SentState
from eventbot.services.scheduler import AnnouncementScheduler

log = logging.getLogger("services.selection")

@dataclass(frozen=True)
class Selected:
    ids: tuple[str, ...]

@dataclass(frozen=True)
class TimedOut:
    pass

SelectionOutcome = Union[Selected, TimedOut]

# async selector(candidates) -> Selected | TimedOut
Selector = Callable[[list[Event]], Awaitable[SelectionOutcome]]

@dataclass
class ManualRunResult:
    kind: NotificationKind
    candidates: list[Event] = field(default_factory=list)
    outcome: SelectionOutcome | None = None
    report: DispatchReport | None = None

    @property
    def no_candidates(self) -> bool:
        return not self.candidates

    @property
    def timed_out(self) -> bool:
        return isinstance(self.outcome, TimedOut)

class ManualAnnouncementFlow:
    """
    Operator-driven batch: list every unsent candidate, let a human pick,
    then send through the scheduler's dispatch path.
    """

    def __init__(self, scheduler: AnnouncementScheduler):
        self.scheduler = scheduler

    def candidates(self, kind: NotificationKind, now: datetime) -> list[Event]:
        today = now.astimezone(self.scheduler.policy.tz).date()
        out: list[Event] = []
        for e in self.scheduler.store.list():
            if e.sent_state(kind) is SentState.SENT:
                continue
            if kind is NotificationKind.ADVANCE and e.date > today:
                out.append(e)
            elif kind is NotificationKind.REMINDER and e.date >= today:
                out.append(e)
        return out

    def preview(self, kind: NotificationKind, now: datetime) -> list[tuple[Event, str, Path | None]]:
        """Compose the copy each candidate would get. Nothing is sent or marked."""
        today = now.astimezone(self.scheduler.policy.tz).date()
        notifier = self.scheduler.notifier
        return [(e, *notifier.compose(e, kind, today)) for e in self.candidates(kind, now)]

    async def run(self, kind: NotificationKind, now: datetime, selector: Selector) -> ManualRunResult:
        result = ManualRunResult(kind=kind, candidates=self.candidates(kind, now))
        if result.no_candidates:
            return result

        result.outcome = await selector(result.candidates)
        if isinstance(result.outcome, TimedOut):
            log.info("Manual %s selection timed out; nothing sent", kind.value)
            return result

        chosen = set(result.outcome.ids)
        picked = [DueNotification(e, kind) for e in result.candidates if e.id in chosen]
        log.info("Manual %s run: %d of %d selected", kind.value, len(picked), len(result.candidates))
        result.report = await self.scheduler.dispatch(picked)
        return result
