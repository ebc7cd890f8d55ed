"""Standing desk reminder engine.

Turns a daily schedule of sit/stand reminders plus work day / work hour
settings into APScheduler alarms, and delivers reminders through desktop
notifications, in-page browser alerts and Web Push.
"""

from .models import (
    Action,
    Channels,
    DEFAULTS,
    Defaults,
    NotificationType,
    ScheduleEntry,
    Settings,
    WorkHours,
    WEEKDAYS,
)
from .store import ConfigStore, MemoryStore, JsonFileStore, SupabaseStore, StoreError, create_store
from .accessor import ConfigAccessor, Snapshot
from .eligibility import is_eligible
from .planner import AlarmSpec, next_fire_time, plan_alarms, resolve_alarm
from .generator import generate_schedule
from .engine import (
    AlarmFired,
    ConfigChanged,
    DayStarted,
    Installed,
    MessageReceived,
    Outcome,
    PushReceived,
    Started,
    handle_event,
    route_message,
)
from .dispatcher import NotificationDispatcher, create_dispatcher
from .push import PushSubscriptionManager
from .runtime import ReminderRuntime, create_runtime

__all__ = [
    "Action",
    "Channels",
    "DEFAULTS",
    "Defaults",
    "NotificationType",
    "ScheduleEntry",
    "Settings",
    "WorkHours",
    "WEEKDAYS",
    "ConfigStore",
    "MemoryStore",
    "JsonFileStore",
    "SupabaseStore",
    "StoreError",
    "create_store",
    "ConfigAccessor",
    "Snapshot",
    "is_eligible",
    "AlarmSpec",
    "next_fire_time",
    "plan_alarms",
    "resolve_alarm",
    "generate_schedule",
    "AlarmFired",
    "ConfigChanged",
    "DayStarted",
    "Installed",
    "MessageReceived",
    "Outcome",
    "PushReceived",
    "Started",
    "handle_event",
    "route_message",
    "NotificationDispatcher",
    "create_dispatcher",
    "PushSubscriptionManager",
    "ReminderRuntime",
    "create_runtime",
]
