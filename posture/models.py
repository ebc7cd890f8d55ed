"""Schedule and settings types, plus the built-in defaults.

Values are persisted with the camelCase keys the message protocol uses
(``notificationType``, ``workDays``, ``workHours``), so ``to_dict`` output can
be written to the store and returned to callers unchanged.
"""

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from logger import logger

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Action(Enum):
    """Posture a reminder asks the user to adopt."""
    STANDING = "standing"
    SITTING = "sitting"


class NotificationType(Enum):
    """Which delivery channels are active."""
    SYSTEM = "system"
    ALERT = "alert"
    BOTH = "both"


def new_entry_id() -> str:
    """Generate a stable opaque id for a new schedule entry."""
    return uuid.uuid4().hex[:8]


def parse_hhmm(value: str) -> int:
    """Parse ``HH:MM`` into minutes since midnight.

    Raises:
        ValueError: If the value is not a valid 24h wall-clock time
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


@dataclass(frozen=True)
class Channels:
    """Delivery channels for a single reminder."""
    system: bool
    alert: bool

    @classmethod
    def for_type(cls, notification_type: NotificationType) -> "Channels":
        return cls(
            system=notification_type in (NotificationType.SYSTEM, NotificationType.BOTH),
            alert=notification_type in (NotificationType.ALERT, NotificationType.BOTH),
        )


@dataclass
class ScheduleEntry:
    """One recurring daily reminder."""

    time: str
    action: Action
    enabled: bool = True
    id: str = field(default_factory=new_entry_id)

    def __post_init__(self):
        parse_hhmm(self.time)
        if not isinstance(self.action, Action):
            self.action = Action(self.action)

    @property
    def hour(self) -> int:
        return parse_hhmm(self.time) // 60

    @property
    def minute(self) -> int:
        return parse_hhmm(self.time) % 60

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time,
            "action": self.action.value,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "ScheduleEntry":
        """Build an entry from persisted data.

        Entries saved without an id take their position as id, which keeps
        alarm names stable across reads of the same data.
        """
        entry_id = data.get("id") or str(position)
        return cls(
            time=data["time"],
            action=Action(data["action"]),
            enabled=bool(data.get("enabled", True)),
            id=str(entry_id),
        )


@dataclass
class WorkHours:
    start: str = "09:00"
    end: str = "18:00"
    enabled: bool = False

    def __post_init__(self):
        parse_hhmm(self.start)
        parse_hhmm(self.end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "enabled": self.enabled}


@dataclass
class Settings:
    """User policy: delivery channels plus work day / work hour filters."""

    notification_type: NotificationType = NotificationType.BOTH
    work_days: dict[str, bool] = field(default_factory=lambda: {day: True for day in WEEKDAYS})
    work_hours: WorkHours = field(default_factory=WorkHours)

    def __post_init__(self):
        if not isinstance(self.notification_type, NotificationType):
            self.notification_type = NotificationType(self.notification_type)
        unknown = set(self.work_days) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")

    @property
    def channels(self) -> Channels:
        return Channels.for_type(self.notification_type)

    def to_dict(self) -> dict:
        return {
            "notificationType": self.notification_type.value,
            "workDays": {day: bool(self.work_days.get(day, False)) for day in WEEKDAYS},
            "workHours": self.work_hours.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """Build settings from a complete persisted dict (see ``merge_settings``)."""
        hours = data["workHours"]
        return cls(
            notification_type=NotificationType(data["notificationType"]),
            work_days={day: bool(data["workDays"][day]) for day in WEEKDAYS},
            work_hours=WorkHours(
                start=hours["start"],
                end=hours["end"],
                enabled=bool(hours["enabled"]),
            ),
        )


def is_settings_complete(data: Optional[Mapping[str, Any]]) -> bool:
    """True if persisted settings carry every field the engine reads."""
    if not isinstance(data, Mapping):
        return False
    days = data.get("workDays")
    hours = data.get("workHours")
    if not isinstance(days, Mapping) or not isinstance(hours, Mapping):
        return False
    if "notificationType" not in data:
        return False
    return (
        all(isinstance(days.get(day), bool) for day in WEEKDAYS)
        and all(k in hours for k in ("start", "end"))
        and isinstance(hours.get("enabled"), bool)
    )


def _flag(value: Any, default: bool) -> bool:
    """Stored booleans only; anything else ('false', 0, None) takes the default."""
    return value if isinstance(value, bool) else default


def merge_settings(data: Optional[Mapping[str, Any]], defaults: "Defaults") -> dict:
    """Fill gaps in persisted settings from the defaults.

    Stored values win; missing top-level keys, weekdays or work hour fields
    come from ``defaults``. Values that cannot be used (wrong type, unknown
    notification type) are replaced as well.
    """
    base = defaults.settings.to_dict()
    if not isinstance(data, Mapping):
        return base

    merged = dict(base)
    if data.get("notificationType") in {t.value for t in NotificationType}:
        merged["notificationType"] = data["notificationType"]

    days = data.get("workDays")
    if isinstance(days, Mapping):
        merged["workDays"] = {day: _flag(days.get(day), base["workDays"][day]) for day in WEEKDAYS}

    hours = data.get("workHours")
    if isinstance(hours, Mapping):
        merged_hours = dict(base["workHours"])
        for key in ("start", "end"):
            value = hours.get(key)
            if isinstance(value, str) and _TIME_RE.match(value):
                merged_hours[key] = value
        merged_hours["enabled"] = _flag(hours.get("enabled"), base["workHours"]["enabled"])
        merged["workHours"] = merged_hours

    return merged


def normalize_schedule(data: Any, defaults: "Defaults") -> list[ScheduleEntry]:
    """Turn persisted schedule data into entries with unique ids.

    Absent data yields the default schedule. Duplicate ids are
    disambiguated with the entry position.
    """
    if not isinstance(data, list):
        data = [entry.to_dict() for entry in defaults.schedule]

    entries = []
    seen: set[str] = set()
    for position, item in enumerate(data):
        try:
            entry = ScheduleEntry.from_dict(item, position)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed schedule entry {position}: {e}")
            continue
        if entry.id in seen:
            entry.id = f"{entry.id}-{position}"
        seen.add(entry.id)
        entries.append(entry)
    return entries


@dataclass(frozen=True)
class Defaults:
    """Built-in schedule and settings used when nothing (valid) is stored."""

    schedule_data: tuple[Mapping[str, Any], ...]
    settings_data: Mapping[str, Any]

    @property
    def schedule(self) -> list[ScheduleEntry]:
        return [ScheduleEntry.from_dict(item, position) for position, item in enumerate(self.schedule_data)]

    @property
    def settings(self) -> Settings:
        return Settings.from_dict(self.settings_data)


DEFAULTS = Defaults(
    schedule_data=(
        MappingProxyType({"time": "09:00", "action": "sitting", "enabled": True}),
        MappingProxyType({"time": "11:00", "action": "standing", "enabled": True}),
        MappingProxyType({"time": "14:00", "action": "sitting", "enabled": True}),
    ),
    settings_data=MappingProxyType({
        "notificationType": "both",
        "workDays": MappingProxyType({day: True for day in WEEKDAYS}),
        "workHours": MappingProxyType({"start": "09:00", "end": "18:00", "enabled": False}),
    }),
)
