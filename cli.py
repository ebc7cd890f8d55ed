#!/usr/bin/env python3
"""Standing desk reminder CLI.

Usage:
    python cli.py serve                       # Run the reminder service
    python cli.py install                     # Initialise default configuration
    python cli.py show                        # Print schedule and settings
    python cli.py add 16:00 standing          # Add a reminder
    python cli.py generate --count 5          # Replace schedule with random times
    python cli.py disable 1a2b3c4d            # Disable (enable/remove) a reminder
    python cli.py settings --notify system --days mon-fri --hours 09:00-18:00
    python cli.py reset                       # Restore defaults
    python cli.py test [--alarm]              # Test notification / test alarm in 5s

Editing commands write the config store directly, then ask a running
service to replan. If the service is down, the new schedule is picked up
on its next start.
"""

import argparse
import asyncio
import random
import sys
from typing import Optional

import httpx

import config
from logger import logger
from posture.accessor import ConfigAccessor
from posture.generator import generate_schedule
from posture.models import WEEKDAYS, Action, NotificationType, ScheduleEntry, WorkHours
from posture.store import StoreError, create_store

DAY_ALIASES = {day[:3]: day for day in WEEKDAYS}


def parse_days(value: str) -> set[str]:
    """Parse ``mon-fri``, ``mon,wed,fri``, ``all`` or ``none`` into weekday names."""
    value = value.strip().lower()
    if value == "all":
        return set(WEEKDAYS)
    if value == "none":
        return set()

    days: set[str] = set()
    for part in value.split(","):
        part = part.strip()
        if "-" in part:
            first, last = (_day(p) for p in part.split("-", 1))
            start, end = WEEKDAYS.index(first), WEEKDAYS.index(last)
            if end < start:
                raise ValueError(f"Day range runs backwards: {part}")
            days.update(WEEKDAYS[start:end + 1])
        elif part:
            days.add(_day(part))
    return days


def _day(value: str) -> str:
    value = value.strip().lower()
    day = DAY_ALIASES.get(value[:3]) if len(value) >= 3 else None
    if day is None or not day.startswith(value):
        raise ValueError(f"Unknown day: {value}")
    return day


def parse_hours(value: str) -> tuple[str, str]:
    start, sep, end = value.partition("-")
    if not sep:
        raise ValueError(f"Expected START-END, got {value!r}")
    # WorkHours validates the HH:MM format
    hours = WorkHours(start=start.strip(), end=end.strip(), enabled=True)
    return hours.start, hours.end


async def send_message(message: dict) -> Optional[dict]:
    """Send a message to the running service; None if it is unreachable."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{config.SERVICE_URL}/messages", json=message, timeout=10)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        logger.warning(f"Reminder service not reachable at {config.SERVICE_URL}: {e}")
        return None


async def notify_service() -> None:
    result = await send_message({"type": "UPDATE_ALARMS"})
    if result and result.get("success"):
        print("Service is replanning alarms.")
    else:
        print("Service not running - alarms will be rebuilt on next start.")


def print_schedule(entries: list[ScheduleEntry]) -> None:
    print("Schedule:")
    if not entries:
        print("  (empty)")
    for entry in entries:
        state = "on " if entry.enabled else "off"
        print(f"  [{state}] {entry.time}  {entry.action.value:<8}  id={entry.id}")


async def cmd_show(accessor: ConfigAccessor, args) -> int:
    print_schedule(await accessor.get_schedule())
    settings = await accessor.get_settings()
    days = [day[:3] for day in WEEKDAYS if settings.work_days.get(day)]
    hours = settings.work_hours
    print("\nSettings:")
    print(f"  Notifications: {settings.notification_type.value}")
    print(f"  Work days:     {', '.join(days) or 'none'}")
    print(f"  Work hours:    {hours.start}-{hours.end} ({'on' if hours.enabled else 'off'})")
    return 0


async def cmd_install(accessor: ConfigAccessor, args) -> int:
    written = await accessor.repair()
    print(f"Initialised: {', '.join(sorted(written))}" if written else "Configuration already complete.")
    await notify_service()
    return 0


async def cmd_add(accessor: ConfigAccessor, args) -> int:
    entries = await accessor.get_schedule()
    entry = ScheduleEntry(time=args.time, action=Action(args.action), enabled=not args.disabled)
    entries.append(entry)
    await accessor.set_schedule(entries)
    print(f"Added {entry.time} {entry.action.value} (id={entry.id})")
    await notify_service()
    return 0


async def cmd_generate(accessor: ConfigAccessor, args) -> int:
    settings = await accessor.get_settings()
    entries = generate_schedule(settings.work_hours, args.count, random.Random(args.seed))
    await accessor.set_schedule(entries)
    print_schedule(entries)
    await notify_service()
    return 0


async def cmd_toggle(accessor: ConfigAccessor, args) -> int:
    entries = await accessor.get_schedule()
    matches = [e for e in entries if e.id == args.id] or [e for e in entries if e.id.startswith(args.id)]
    if len(matches) != 1:
        print(f"{'No' if not matches else 'Ambiguous'} reminder matching {args.id!r}. Use `show` to list ids.")
        return 1

    target = matches[0]
    if args.command == "remove":
        entries = [e for e in entries if e is not target]
        print(f"Removed {target.time} {target.action.value}")
    else:
        target.enabled = args.command == "enable"
        print(f"{'Enabled' if target.enabled else 'Disabled'} {target.time} {target.action.value}")

    await accessor.set_schedule(entries)
    await notify_service()
    return 0


async def cmd_settings(accessor: ConfigAccessor, args) -> int:
    settings = await accessor.get_settings()
    if args.notify:
        settings.notification_type = NotificationType(args.notify)
    if args.days is not None:
        enabled = parse_days(args.days)
        settings.work_days = {day: day in enabled for day in WEEKDAYS}
    if args.hours:
        start, end = parse_hours(args.hours)
        settings.work_hours = WorkHours(start=start, end=end, enabled=True)
    if args.hours_off:
        settings.work_hours.enabled = False

    await accessor.set_settings(settings)
    return await cmd_show(accessor, args)


async def cmd_reset(accessor: ConfigAccessor, args) -> int:
    await accessor.reset()
    print("Configuration restored to defaults.")
    await notify_service()
    return 0


async def cmd_test(accessor: ConfigAccessor, args) -> int:
    message_type = "CREATE_TEST_ALARM" if args.alarm else "TEST_NOTIFICATION"
    result = await send_message({"type": message_type})
    if result is None:
        print("Service not running - start it with `python cli.py serve`.")
        return 1
    print("Test alarm fires in 5 seconds." if args.alarm else "Test notification sent.")
    return 0


COMMANDS = {
    "show": cmd_show,
    "install": cmd_install,
    "add": cmd_add,
    "generate": cmd_generate,
    "remove": cmd_toggle,
    "enable": cmd_toggle,
    "disable": cmd_toggle,
    "settings": cmd_settings,
    "reset": cmd_reset,
    "test": cmd_test,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Standing desk sit/stand reminders")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the reminder service")
    sub.add_parser("install", help="Write default configuration where missing")
    sub.add_parser("show", help="Print schedule and settings")

    add = sub.add_parser("add", help="Add a daily reminder")
    add.add_argument("time", help="Time of day, HH:MM")
    add.add_argument("action", choices=[a.value for a in Action])
    add.add_argument("--disabled", action="store_true", help="Add without enabling")

    generate = sub.add_parser("generate", help="Replace the schedule with random times inside work hours")
    generate.add_argument("--count", type=int, default=3, help="Number of reminders (default 3)")
    generate.add_argument("--seed", type=int, help="Seed for repeatable schedules")

    for name in ("remove", "enable", "disable"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a reminder")
        cmd.add_argument("id", help="Reminder id (or unique prefix)")

    settings = sub.add_parser("settings", help="Change notification settings")
    settings.add_argument("--notify", choices=[t.value for t in NotificationType])
    settings.add_argument("--days", help="Work days, e.g. mon-fri, mon,wed,fri, all, none")
    settings.add_argument("--hours", help="Work hours, e.g. 09:00-18:00 (enables the filter)")
    settings.add_argument("--hours-off", action="store_true", help="Disable the work hours filter")

    sub.add_parser("reset", help="Restore default schedule and settings")

    test = sub.add_parser("test", help="Send a test notification")
    test.add_argument("--alarm", action="store_true", help="Schedule a test alarm in 5 seconds instead")

    return parser


async def run(args) -> int:
    accessor = ConfigAccessor(create_store())
    return await COMMANDS[args.command](accessor, args)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn
        uvicorn.run("api.main:app", host=config.API_HOST, port=config.API_PORT)
        return 0

    try:
        return asyncio.run(run(args))
    except (ValueError, StoreError) as e:
        print(f"[ERROR] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
