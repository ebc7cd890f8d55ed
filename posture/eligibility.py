"""Work day / work hour policy check for regular reminders.

Test reminders never go through this filter.
"""

from datetime import datetime
from typing import Any, Mapping, Union

from logger import logger
from .models import DEFAULTS, WEEKDAYS, Defaults, Settings, merge_settings, parse_hhmm


def is_eligible(
    now: datetime,
    settings: Union[Settings, Mapping[str, Any], None],
    defaults: Defaults = DEFAULTS
) -> bool:
    """Check whether a regular reminder may be shown at ``now``.

    Args:
        now: Current time, already in the user's timezone
        settings: Settings object or raw persisted settings (may be partial)
        defaults: Values used to fill in missing settings

    Returns:
        True if today is a work day and ``now`` falls inside the inclusive
        work hour window (when that window is enabled)
    """
    if not isinstance(settings, Settings):
        settings = Settings.from_dict(merge_settings(settings, defaults))

    day_name = WEEKDAYS[now.weekday()]
    if not settings.work_days.get(day_name, False):
        logger.info(f"Reminder blocked: {day_name} is not a work day")
        return False

    hours = settings.work_hours
    if hours.enabled:
        current = now.hour * 60 + now.minute
        # end < start leaves an empty window; it does not wrap past midnight
        if current < parse_hhmm(hours.start) or current > parse_hhmm(hours.end):
            logger.info(f"Reminder blocked: outside work hours ({hours.start} - {hours.end})")
            return False

    return True
