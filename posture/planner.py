"""Derive alarm registrations from the schedule and resolve fired alarms."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from .models import ScheduleEntry

ALARM_PREFIX = "standing_desk_"
TEST_ALARM_NAME = "test_alarm"
DAILY_MINUTES = 24 * 60
TEST_ALARM_DELAY = timedelta(seconds=5)


@dataclass(frozen=True)
class AlarmSpec:
    """A named alarm: first fire time plus optional repeat interval."""
    name: str
    when: datetime
    period_minutes: Optional[int] = None


def alarm_name(entry: ScheduleEntry) -> str:
    return f"{ALARM_PREFIX}{entry.id}"


def parse_alarm_name(name: str) -> Optional[str]:
    """Extract the schedule entry id from an alarm name."""
    if not name.startswith(ALARM_PREFIX):
        return None
    entry_id = name[len(ALARM_PREFIX):]
    return entry_id or None


def next_fire_time(entry: ScheduleEntry, now: datetime) -> datetime:
    """Today at the entry's time if still ahead of ``now``, else tomorrow.

    The result carries ``now``'s tzinfo; with a ZoneInfo that keeps the
    wall-clock time correct across DST changes.
    """
    target = datetime.combine(now.date(), time(entry.hour, entry.minute), tzinfo=now.tzinfo)
    if target <= now:
        target = datetime.combine(now.date() + timedelta(days=1), time(entry.hour, entry.minute), tzinfo=now.tzinfo)
    return target


def plan_alarms(schedule: list[ScheduleEntry], now: datetime) -> list[AlarmSpec]:
    """One daily alarm per enabled entry, in schedule order."""
    return [
        AlarmSpec(name=alarm_name(entry), when=next_fire_time(entry, now), period_minutes=DAILY_MINUTES)
        for entry in schedule
        if entry.enabled
    ]


def make_test_alarm(now: datetime) -> AlarmSpec:
    """One-shot alarm used to check the notification plumbing."""
    return AlarmSpec(name=TEST_ALARM_NAME, when=now + TEST_ALARM_DELAY)


def resolve_alarm(name: str, schedule: list[ScheduleEntry]) -> Optional[ScheduleEntry]:
    """Find the entry a fired alarm belongs to.

    Returns None when the entry was deleted or disabled since the alarm was
    registered; the fire is then dropped.
    """
    entry_id = parse_alarm_name(name)
    if entry_id is None:
        return None
    for entry in schedule:
        if entry.id == entry_id:
            return entry if entry.enabled else None
    return None
