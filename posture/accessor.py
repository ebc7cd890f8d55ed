"""Read and write schedule/settings with defaulting."""

from dataclasses import dataclass
from typing import Any, Optional

from logger import logger
from .models import (
    DEFAULTS,
    Defaults,
    ScheduleEntry,
    Settings,
    is_settings_complete,
    merge_settings,
    normalize_schedule,
)
from .store import ConfigStore

SCHEDULE_KEY = "schedule"
SETTINGS_KEY = "settings"
PUSH_SUBSCRIPTION_KEY = "push_subscription"


@dataclass(frozen=True)
class Snapshot:
    """Raw persisted values an event is evaluated against."""
    schedule: Any = None
    settings: Any = None


class ConfigAccessor:
    """Typed access to the config store.

    Reads never fail for missing configuration: absent or incomplete values
    resolve to ``defaults`` merged with whatever was stored. Writing does not
    replan alarms - callers send ``UPDATE_ALARMS`` (or rely on the store's
    change listeners) for that.
    """

    def __init__(self, store: ConfigStore, defaults: Defaults = DEFAULTS):
        self.store = store
        self.defaults = defaults

    async def snapshot(self) -> Snapshot:
        data = await self.store.get([SCHEDULE_KEY, SETTINGS_KEY])
        return Snapshot(schedule=data.get(SCHEDULE_KEY), settings=data.get(SETTINGS_KEY))

    async def get_schedule(self) -> list[ScheduleEntry]:
        data = await self.store.get([SCHEDULE_KEY])
        if SCHEDULE_KEY not in data:
            logger.info("No schedule stored, using default schedule")
        return normalize_schedule(data.get(SCHEDULE_KEY), self.defaults)

    async def get_settings(self) -> Settings:
        data = await self.store.get([SETTINGS_KEY])
        stored = data.get(SETTINGS_KEY)
        if not is_settings_complete(stored):
            logger.info("Settings missing or incomplete, merging in defaults")
        return Settings.from_dict(merge_settings(stored, self.defaults))

    async def set_schedule(self, entries: list[ScheduleEntry]) -> None:
        await self.store.set({SCHEDULE_KEY: [entry.to_dict() for entry in entries]})
        logger.info(f"Saved schedule ({len(entries)} entries)")

    async def set_settings(self, settings: Settings) -> None:
        await self.store.set({SETTINGS_KEY: settings.to_dict()})
        logger.info(f"Saved settings (notifications: {settings.notification_type.value})")

    async def write(self, items: dict[str, Any]) -> None:
        """Persist raw values produced by the engine."""
        if items:
            await self.store.set(items)

    async def repair(self) -> dict[str, Any]:
        """Write defaults for keys that are absent or structurally incomplete.

        Returns:
            The values that were written (empty if nothing needed repair)
        """
        snapshot = await self.snapshot()
        updates = repair_updates(snapshot, self.defaults)
        if updates:
            await self.store.set(updates)
            logger.info(f"Initialised default configuration: {sorted(updates)}")
        return updates

    async def reset(self) -> None:
        """Clear everything and store the built-in defaults.

        The push subscription is kept; only the platform may revoke it.
        """
        subscription = await self.get_push_subscription()
        await self.store.clear()
        values = default_values(self.defaults)
        if subscription is not None:
            values[PUSH_SUBSCRIPTION_KEY] = subscription
        await self.store.set(values)
        logger.info("Configuration restored to defaults")

    async def get_push_subscription(self) -> Optional[dict]:
        data = await self.store.get([PUSH_SUBSCRIPTION_KEY])
        return data.get(PUSH_SUBSCRIPTION_KEY)

    async def set_push_subscription(self, subscription: dict) -> None:
        await self.store.set({PUSH_SUBSCRIPTION_KEY: subscription})


def default_values(defaults: Defaults = DEFAULTS) -> dict[str, Any]:
    """Both defaults in their persisted form."""
    return {
        SCHEDULE_KEY: [entry.to_dict() for entry in defaults.schedule],
        SETTINGS_KEY: defaults.settings.to_dict(),
    }


def repair_updates(snapshot: Snapshot, defaults: Defaults = DEFAULTS) -> dict[str, Any]:
    """Values to write so that both keys are present and complete."""
    updates: dict[str, Any] = {}
    if not isinstance(snapshot.schedule, list):
        updates[SCHEDULE_KEY] = [entry.to_dict() for entry in defaults.schedule]
    if not is_settings_complete(snapshot.settings):
        updates[SETTINGS_KEY] = merge_settings(snapshot.settings, defaults)
    return updates
