"""Reminder engine: ``(snapshot, event, now) -> Outcome``.

The engine never touches the scheduler, the store or a notifier. It reads a
``Snapshot`` of persisted values and returns what should happen as data:
values to write, effects to execute (in order) and, for messages, the
response to send back. ``posture.runtime`` executes outcomes.

Message router:

    GET_SCHEDULE       -> {"schedule": [...]}
    GET_SETTINGS       -> {"settings": {...}}
    UPDATE_ALARMS      -> {"success": True}, then replan
    CREATE_TEST_ALARM  -> {"success": True}, then one-shot alarm in 5s
    TEST_NOTIFICATION  -> {"success": True}, then deliver (no policy check)
    RESET_TO_DEFAULTS  -> {"success": True}, then write defaults and replan
    PING               -> {"success": True, "message": ...}
    anything else      -> {"success": False, "error": ...}
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from logger import logger
from .accessor import SCHEDULE_KEY, SETTINGS_KEY, Snapshot, default_values, repair_updates
from .eligibility import is_eligible
from .models import (
    DEFAULTS,
    Action,
    Channels,
    Defaults,
    ScheduleEntry,
    Settings,
    merge_settings,
    normalize_schedule,
)
from .planner import TEST_ALARM_NAME, make_test_alarm, plan_alarms, resolve_alarm

REMINDER_TITLE = "Standing Desk Reminder"
TEST_TITLE = "Standing Desk Reminder - TEST"
PUSH_DEFAULT_TITLE = REMINDER_TITLE
PUSH_DEFAULT_BODY = "Time to change your posture"

ACTION_MESSAGES = {
    Action.STANDING: "Time to work standing up! 🚶",
    Action.SITTING: "Time to sit down! 🪑",
}

TEST_ALARM_MESSAGE = "🧪 Test alarm fired!"
TEST_NOTIFICATION_MESSAGE = "🧪 This is a test notification!"
TEST_ALERT_MESSAGE = "🧪 This is a test alert!"
PING_MESSAGE = "Reminder service ready"


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class Installed:
    """First run (or upgrade): initialise config, subscribe to push, plan."""


@dataclass(frozen=True)
class Started:
    """Process cold start: subscribe to push and replan."""


@dataclass(frozen=True)
class DayStarted:
    """Local midnight: recompute next fire times against today's UTC offset."""


@dataclass(frozen=True)
class AlarmFired:
    name: str


@dataclass(frozen=True)
class PushReceived:
    data: Optional[bytes] = None


@dataclass(frozen=True)
class MessageReceived:
    request: Any


@dataclass(frozen=True)
class ConfigChanged:
    keys: frozenset


Event = Union[Installed, Started, DayStarted, AlarmFired, PushReceived, MessageReceived, ConfigChanged]


# ============================================================
# Effects
# ============================================================

@dataclass(frozen=True)
class ClearAlarms:
    """Remove every recurring reminder alarm."""


@dataclass(frozen=True)
class CreateAlarm:
    name: str
    when: datetime
    period_minutes: Optional[int] = None


@dataclass(frozen=True)
class Deliver:
    title: str
    message: str
    channels: Channels
    alert_message: Optional[str] = None


@dataclass(frozen=True)
class EnsurePushSubscription:
    pass


@dataclass(frozen=True)
class ResetConfig:
    """Clear the store and write the built-in defaults."""


Effect = Union[ClearAlarms, CreateAlarm, Deliver, EnsurePushSubscription, ResetConfig]


@dataclass
class Outcome:
    """Result of handling one event.

    The runtime applies ``writes`` first, then runs ``effects`` in order.
    ``response`` is only set for messages.
    """
    writes: dict[str, Any] = field(default_factory=dict)
    effects: list = field(default_factory=list)
    response: Optional[dict] = None


# ============================================================
# Helpers
# ============================================================

def replan_effects(schedule: list[ScheduleEntry], now: datetime) -> list:
    """Clear-then-create effects for the given schedule."""
    effects: list = [ClearAlarms()]
    for spec in plan_alarms(schedule, now):
        effects.append(CreateAlarm(spec.name, spec.when, spec.period_minutes))
    logger.info(f"Planned {len(effects) - 1} alarm(s) from {len(schedule)} schedule entries")
    return effects


def _settings(snapshot: Snapshot, defaults: Defaults) -> Settings:
    return Settings.from_dict(merge_settings(snapshot.settings, defaults))


def _schedule(snapshot: Snapshot, defaults: Defaults) -> list[ScheduleEntry]:
    return normalize_schedule(snapshot.schedule, defaults)


def parse_push_payload(data: Optional[bytes]) -> tuple[str, str]:
    """Best-effort parse of a push payload into (title, body)."""
    payload: dict = {}
    if data:
        try:
            parsed = json.loads(data)
            if isinstance(parsed, dict):
                payload = parsed
            else:
                logger.warning("Push payload is not a JSON object, using defaults")
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Failed to parse push payload: {e}")

    title = payload.get("title")
    body = payload.get("body")
    return (
        title if isinstance(title, str) and title else PUSH_DEFAULT_TITLE,
        body if isinstance(body, str) and body else PUSH_DEFAULT_BODY,
    )


# ============================================================
# Event handlers
# ============================================================

def _on_installed(snapshot: Snapshot, now: datetime, defaults: Defaults) -> Outcome:
    writes = repair_updates(snapshot, defaults)
    if writes:
        logger.info(f"Initialising default configuration: {sorted(writes)}")
    repaired = Snapshot(
        schedule=writes.get(SCHEDULE_KEY, snapshot.schedule),
        settings=writes.get(SETTINGS_KEY, snapshot.settings),
    )
    effects = [EnsurePushSubscription()] + replan_effects(_schedule(repaired, defaults), now)
    return Outcome(writes=writes, effects=effects)


def _on_started(snapshot: Snapshot, now: datetime, defaults: Defaults) -> Outcome:
    logger.info("Cold start: rebuilding alarms from stored schedule")
    effects = [EnsurePushSubscription()] + replan_effects(_schedule(snapshot, defaults), now)
    return Outcome(effects=effects)


def _on_day_started(snapshot: Snapshot, now: datetime, defaults: Defaults) -> Outcome:
    logger.info(f"New day {now.date().isoformat()}: realigning alarms to wall-clock times")
    return Outcome(effects=replan_effects(_schedule(snapshot, defaults), now))


def _on_alarm(name: str, snapshot: Snapshot, now: datetime, defaults: Defaults) -> Outcome:
    settings = _settings(snapshot, defaults)

    if name == TEST_ALARM_NAME:
        logger.info(f"Test alarm fired (channels: {settings.notification_type.value})")
        return Outcome(effects=[Deliver(TEST_TITLE, TEST_ALARM_MESSAGE, settings.channels)])

    entry = resolve_alarm(name, _schedule(snapshot, defaults))
    if entry is None:
        logger.info(f"Dropping alarm {name}: entry no longer exists or is disabled")
        return Outcome()

    if not is_eligible(now, settings, defaults):
        logger.info(f"Reminder {entry.id} paused: outside work days/hours")
        return Outcome()

    message = ACTION_MESSAGES[entry.action]
    logger.info(f"Reminder {entry.id} ({entry.time} {entry.action.value}) due")
    return Outcome(effects=[Deliver(REMINDER_TITLE, message, settings.channels)])


def _on_push(data: Optional[bytes]) -> Outcome:
    title, body = parse_push_payload(data)
    logger.info(f"Push received: {title}")
    return Outcome(effects=[Deliver(title, body, Channels(system=True, alert=False))])


def _on_config_changed(keys: frozenset, snapshot: Snapshot, now: datetime, defaults: Defaults) -> Outcome:
    if SCHEDULE_KEY not in keys:
        return Outcome()
    return Outcome(effects=replan_effects(_schedule(snapshot, defaults), now))


def route_message(request: Any, snapshot: Snapshot, now: datetime, defaults: Defaults = DEFAULTS) -> Outcome:
    """Answer one request from the UI layer."""
    message_type = request.get("type") if isinstance(request, dict) else None

    if message_type == "GET_SCHEDULE":
        schedule = _schedule(snapshot, defaults)
        return Outcome(response={"schedule": [entry.to_dict() for entry in schedule]})

    if message_type == "GET_SETTINGS":
        return Outcome(response={"settings": _settings(snapshot, defaults).to_dict()})

    if message_type == "UPDATE_ALARMS":
        return Outcome(
            effects=replan_effects(_schedule(snapshot, defaults), now),
            response={"success": True},
        )

    if message_type == "CREATE_TEST_ALARM":
        spec = make_test_alarm(now)
        logger.info(f"Test alarm scheduled for {spec.when.isoformat()}")
        return Outcome(
            effects=[CreateAlarm(spec.name, spec.when, spec.period_minutes)],
            response={"success": True},
        )

    if message_type == "TEST_NOTIFICATION":
        settings = _settings(snapshot, defaults)
        logger.info(f"Test notification requested (channels: {settings.notification_type.value})")
        return Outcome(
            effects=[Deliver(TEST_TITLE, TEST_NOTIFICATION_MESSAGE, settings.channels, TEST_ALERT_MESSAGE)],
            response={"success": True},
        )

    if message_type == "RESET_TO_DEFAULTS":
        restored = Snapshot(**default_values(defaults))
        return Outcome(
            effects=[ResetConfig()] + replan_effects(_schedule(restored, defaults), now),
            response={"success": True},
        )

    if message_type == "PING":
        return Outcome(response={"success": True, "message": PING_MESSAGE})

    logger.warning(f"Unrecognized message: {message_type!r}")
    return Outcome(response={"success": False, "error": "Unrecognized message"})


def handle_event(event: Event, snapshot: Snapshot, now: datetime, defaults: Defaults = DEFAULTS) -> Outcome:
    """Dispatch an event to its handler."""
    if isinstance(event, MessageReceived):
        return route_message(event.request, snapshot, now, defaults)
    if isinstance(event, AlarmFired):
        return _on_alarm(event.name, snapshot, now, defaults)
    if isinstance(event, PushReceived):
        return _on_push(event.data)
    if isinstance(event, ConfigChanged):
        return _on_config_changed(event.keys, snapshot, now, defaults)
    if isinstance(event, Installed):
        return _on_installed(snapshot, now, defaults)
    if isinstance(event, Started):
        return _on_started(snapshot, now, defaults)
    if isinstance(event, DayStarted):
        return _on_day_started(snapshot, now, defaults)
    raise TypeError(f"Unknown event: {event!r}")
