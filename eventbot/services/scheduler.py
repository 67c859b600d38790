import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from eventbot.models import DispatchReport, DueNotification, NotificationKind, SentState
from eventbot.services.notifier import Notifier
from eventbot.services.policy import Mode, PolicyConfig, evaluate
from eventbot.storage.event_store import JsonEventStore, StoreError
from eventbot.utils.timeutil import now_local

log = logging.getLogger("services.scheduler")

class AnnouncementScheduler:
    """
    Time-triggered driver around the notification policy.

    Jobs:
      - daily_advance: once a day at the advance trigger time
      - reminder_check: every reminder_check_minutes
      - catch_up: hourly (configurable), both kinds in catch-up mode
      - startup_catch_up: once, a few seconds after start
      - cleanup: daily removal of long-past events

    APScheduler runs coroutine jobs as concurrent tasks, so the
    check/send/mark sequence is serialized by one lock.
    """

    def __init__(
        self,
        *,
        store: JsonEventStore,
        notifier: Notifier,
        policy: PolicyConfig,
        advance_hour: int = 9,
        advance_minute: int = 0,
        reminder_check_minutes: int = 15,
        catch_up_enabled: bool = True,
        catch_up_minutes: int = 60,
        cleanup_days: int = 30,
        startup_delay_seconds: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.policy = policy
        self.advance_hour = advance_hour
        self.advance_minute = advance_minute
        self.reminder_check_minutes = reminder_check_minutes
        self.catch_up_enabled = catch_up_enabled
        self.catch_up_minutes = catch_up_minutes
        self.cleanup_days = cleanup_days
        self.startup_delay_seconds = startup_delay_seconds
        self.clock = clock or (lambda: now_local(policy.tz_name))

        self.sched = AsyncIOScheduler(timezone=policy.tz)
        self._lock = asyncio.Lock()

    def register_jobs(self) -> None:
        self.sched.add_job(
            self.run_advance_tick,
            CronTrigger(hour=self.advance_hour, minute=self.advance_minute, timezone=self.policy.tz),
            id="daily_advance",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.sched.add_job(
            self.run_reminder_tick,
            self._every(self.reminder_check_minutes),
            id="reminder_check",
            replace_existing=True,
            misfire_grace_time=60,
        )

        if self.catch_up_enabled:
            self.sched.add_job(self.run_catch_up, self._every(self.catch_up_minutes), id="catch_up", replace_existing=True)

            # initial catch-up on boot
            self.sched.add_job(
                self.run_catch_up,
                DateTrigger(run_date=self.clock() + timedelta(seconds=self.startup_delay_seconds)),
                id="startup_catch_up",
                replace_existing=True,
            )

        self.sched.add_job(
            self.run_cleanup,
            CronTrigger(hour=3, minute=0, timezone=self.policy.tz),
            id="cleanup",
            replace_existing=True,
        )

    def _every(self, minutes: int) -> CronTrigger:
        if 1 <= minutes <= 59:
            return CronTrigger(minute=f"*/{minutes}", timezone=self.policy.tz)
        if minutes % 60 == 0 and 1 <= minutes // 60 <= 23:
            return CronTrigger(minute=0, hour=f"*/{minutes // 60}", timezone=self.policy.tz)
        raise ValueError(f"Unsupported job period: {minutes} minutes")

    def start(self) -> None:
        self.register_jobs()
        self.sched.start()
        log.info("Scheduler started (tz=%s, days_ahead=%d)", self.policy.tz_name, self.policy.days_ahead)

    def shutdown(self) -> None:
        self.sched.shutdown(wait=False)

    # ticks

    async def run_advance_tick(self) -> DispatchReport:
        return await self._tick("advance", Mode.SCHEDULED, (NotificationKind.ADVANCE,))

    async def run_reminder_tick(self) -> DispatchReport:
        return await self._tick("reminder", Mode.SCHEDULED, (NotificationKind.REMINDER,))

    async def run_catch_up(self) -> DispatchReport:
        return await self._tick("catch-up", Mode.CATCH_UP, (NotificationKind.ADVANCE, NotificationKind.REMINDER))

    async def run_cleanup(self) -> None:
        try:
            async with self._lock:
                self.store.cleanup_old_events(self.clock().date(), days_old=self.cleanup_days)
        except Exception as ex:
            log.exception("Cleanup job error: %s", ex)

    async def _tick(self, name: str, mode: Mode, kinds: Iterable[NotificationKind]) -> DispatchReport:
        log.debug("Checking for %s notifications", name)
        try:
            now = self.clock()
            due = evaluate(now, self.store.list(), self.policy, mode, kinds)
            if not due:
                return DispatchReport()
            log.info("%s tick: %d notification(s) due", name, len(due))
            return await self.dispatch(due)
        except Exception as ex:
            log.exception("%s tick error: %s", name, ex)
            return DispatchReport()

    # dispatch

    async def dispatch(self, due: Iterable[DueNotification]) -> DispatchReport:
        """
        Send each due notification, marking it sent only after a confirmed
        delivery. Shared by the timed ticks and the manual flow.
        """
        report = DispatchReport()
        async with self._lock:
            for item in due:
                current = self.store.get(item.event.id)
                if current is None or current.sent_state(item.kind) is SentState.SENT:
                    report.skipped.append(item)
                    continue

                result = await self.notifier.notify(current, item.kind, self.clock().date())
                if not result.ok:
                    report.failed.append(DueNotification(current, item.kind))
                    continue

                try:
                    self.store.mark_sent(current.id, item.kind)
                except StoreError as ex:
                    log.error("Sent %s for %s but could not record it: %s", item.kind.value, current.id, ex)
                report.sent.append(DueNotification(current, item.kind))

        if report.sent or report.failed:
            log.info("Dispatch: sent=%d failed=%d skipped=%d", len(report.sent), len(report.failed), len(report.skipped))
        return report
