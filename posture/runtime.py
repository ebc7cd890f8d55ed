"""Execute engine outcomes against APScheduler, the store and notifiers.

Every event is evaluated against a fresh snapshot of the store; the runtime
keeps no schedule state of its own beyond the APScheduler jobs, which are
always regenerated from the stored schedule.
"""

from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

import config
from logger import logger
from .accessor import ConfigAccessor, repair_updates
from .dispatcher import NotificationDispatcher, create_dispatcher
from .engine import (
    AlarmFired,
    ClearAlarms,
    ConfigChanged,
    CreateAlarm,
    DayStarted,
    Deliver,
    EnsurePushSubscription,
    Event,
    Installed,
    Outcome,
    PushReceived,
    ResetConfig,
    Started,
    handle_event,
)
from .models import DEFAULTS, Defaults
from .planner import ALARM_PREFIX, TEST_ALARM_NAME
from .push import PushSubscriptionManager
from .store import create_store

# Late wake-ups (sleep, suspend) still fire once within this window
MISFIRE_GRACE_SECONDS = 300

# Outside ALARM_PREFIX so replans never remove it
REALIGN_JOB_ID = "daily_realign"


class ReminderRuntime:
    """Thin adapter between platform events and the pure engine."""

    def __init__(
        self,
        accessor: ConfigAccessor,
        scheduler: AsyncIOScheduler,
        dispatcher: NotificationDispatcher,
        push_manager: PushSubscriptionManager,
        tz: ZoneInfo,
        clock: Optional[Callable[[], datetime]] = None,
        defaults: Defaults = DEFAULTS,
    ):
        self.accessor = accessor
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.push_manager = push_manager
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.defaults = defaults

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the scheduler and rebuild alarms from the store."""
        self.accessor.store.add_listener(self._on_config_changed)
        self.scheduler.add_job(
            self.realign,
            trigger=CronTrigger(hour=0, minute=0, timezone=self.tz),
            id=REALIGN_JOB_ID,
            name="realign",
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True
        )
        self.scheduler.start()

        snapshot = await self.accessor.snapshot()
        event = Installed() if repair_updates(snapshot, self.defaults) else Started()
        await self.handle(event)
        logger.info(f"Reminder runtime started with {len(self.alarms())} alarm(s)")

    def stop(self) -> None:
        self.accessor.store.remove_listener(self._on_config_changed)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Reminder runtime stopped")

    # --------------------------------------------------------
    # Events
    # --------------------------------------------------------

    async def evaluate(self, event: Event) -> Outcome:
        """Run the engine for one event against the current store contents."""
        snapshot = await self.accessor.snapshot()
        return handle_event(event, snapshot, self.clock(), self.defaults)

    async def apply(self, outcome: Outcome) -> None:
        """Persist writes, then run effects in order.

        A failing effect is logged and skipped; later effects still run.
        """
        if outcome.writes:
            try:
                await self.accessor.write(outcome.writes)
            except Exception as e:
                logger.error(f"Failed to save configuration {sorted(outcome.writes)}: {e}")

        for effect in outcome.effects:
            try:
                await self._execute(effect)
            except Exception as e:
                logger.error(f"{type(effect).__name__} failed: {e}")

    async def handle(self, event: Event) -> Optional[dict]:
        """Evaluate and apply an event, returning the response (if any)."""
        try:
            outcome = await self.evaluate(event)
        except Exception as e:
            logger.error(f"Failed to handle {type(event).__name__}: {e}")
            return None
        await self.apply(outcome)
        return outcome.response

    async def fire_alarm(self, name: str) -> None:
        """APScheduler job target."""
        logger.info(f"Alarm fired: {name}")
        await self.handle(AlarmFired(name))

    async def realign(self) -> None:
        """Daily job target.

        Recurring alarms repeat every 1440 minutes of elapsed time, so after a
        DST change they drift by an hour until replanned.
        """
        await self.handle(DayStarted())

    async def receive_push(self, data: Optional[bytes]) -> None:
        await self.handle(PushReceived(data))

    async def _on_config_changed(self, keys: set[str]) -> None:
        await self.handle(ConfigChanged(frozenset(keys)))

    # --------------------------------------------------------
    # Effects
    # --------------------------------------------------------

    async def _execute(self, effect) -> None:
        if isinstance(effect, ClearAlarms):
            self.clear_alarms()
        elif isinstance(effect, CreateAlarm):
            self.create_alarm(effect)
        elif isinstance(effect, Deliver):
            await self.dispatcher.dispatch(effect.title, effect.message, effect.channels, effect.alert_message)
        elif isinstance(effect, EnsurePushSubscription):
            await self.push_manager.ensure_subscription()
        elif isinstance(effect, ResetConfig):
            await self.accessor.reset()
        else:
            raise TypeError(f"Unknown effect: {effect!r}")

    def clear_alarms(self) -> int:
        """Remove every recurring reminder job; the test alarm is left alone."""
        removed = 0
        for job in self.scheduler.get_jobs():
            if not job.id.startswith(ALARM_PREFIX):
                continue
            try:
                self.scheduler.remove_job(job.id)
                removed += 1
            except JobLookupError:
                pass  # Already gone
        logger.info(f"Cleared {removed} previous alarm(s)")
        return removed

    def create_alarm(self, effect: CreateAlarm) -> None:
        if effect.period_minutes:
            trigger = IntervalTrigger(minutes=effect.period_minutes, start_date=effect.when, timezone=self.tz)
        else:
            trigger = DateTrigger(run_date=effect.when, timezone=self.tz)

        self.scheduler.add_job(
            self.fire_alarm,
            trigger=trigger,
            args=[effect.name],
            id=effect.name,
            name=f"alarm:{effect.name}",
            next_run_time=effect.when,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True
        )
        repeat = f"every {effect.period_minutes} min" if effect.period_minutes else "once"
        logger.info(f"Alarm {effect.name} scheduled for {effect.when.isoformat()} ({repeat})")

    def alarms(self) -> list[dict]:
        """Registered reminder and test alarms, for diagnostics."""
        result = []
        for job in self.scheduler.get_jobs():
            if not (job.id.startswith(ALARM_PREFIX) or job.id == TEST_ALARM_NAME):
                continue
            next_run = getattr(job, "next_run_time", None)
            result.append({
                "name": job.id,
                "next_run_time": next_run.isoformat() if next_run else None,
                "recurring": isinstance(job.trigger, IntervalTrigger),
            })
        return result


def create_runtime(scheduler: Optional[AsyncIOScheduler] = None) -> ReminderRuntime:
    """Wire a runtime from ``config``."""
    tz = ZoneInfo(config.REMINDER_TZ)
    accessor = ConfigAccessor(create_store())
    return ReminderRuntime(
        accessor=accessor,
        scheduler=scheduler or AsyncIOScheduler(timezone=tz),
        dispatcher=create_dispatcher(),
        push_manager=PushSubscriptionManager(accessor),
        tz=tz,
    )
