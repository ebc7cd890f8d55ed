"""Random sit/stand schedule inside the work hour window."""

import random
from typing import Optional

from logger import logger
from .models import Action, ScheduleEntry, WorkHours, parse_hhmm

MIN_GAP = 30
MAX_GAP = 119
ROUND_TO = 5


def _hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def generate_schedule(
    work_hours: WorkHours,
    count: int = 3,
    rng: Optional[random.Random] = None
) -> list[ScheduleEntry]:
    """Build ``count`` enabled reminders alternating sitting and standing.

    The first reminder is at the start of the window. Each later one comes
    30-119 minutes after the previous, rounded down to a multiple of five
    minutes. Times past the end of the window are pulled back to the end.

    Args:
        work_hours: Window to fill (``enabled`` is ignored)
        count: Number of reminders
        rng: Random source, seeded in tests

    Raises:
        ValueError: If count is less than one
    """
    if count < 1:
        raise ValueError(f"Schedule needs at least one reminder, got {count}")
    rng = rng or random.Random()

    start = parse_hhmm(work_hours.start)
    end = parse_hhmm(work_hours.end)
    current = start
    entries = []
    for index in range(count):
        if index > 0:
            current += rng.randint(MIN_GAP, MAX_GAP)
            current -= current % ROUND_TO
        action = Action.SITTING if index % 2 == 0 else Action.STANDING
        entries.append(ScheduleEntry(time=_hhmm(min(current, end)), action=action, enabled=True))

    logger.debug(f"Generated {count} reminders between {work_hours.start} and {work_hours.end}")
    return entries
