"""Key-value persistence for schedule and settings.

Every store exposes the same async interface - ``get(keys)``, ``set(items)``
and ``clear()`` - and notifies registered listeners with the set of keys a
write touched. Writes are last-write-wins; nothing is merged.
"""

import copy
import inspect
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import httpx

import config
from logger import logger

Listener = Callable[[set[str]], Union[Awaitable[None], None]]


class StoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class ConfigStore(ABC):
    """Base class for change-notifying key-value stores."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked with the changed keys after each write."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self, keys: set[str]) -> None:
        if not keys:
            return
        for listener in list(self._listeners):
            try:
                result = listener(keys)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Config change listener failed for {sorted(keys)}: {e}")

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return stored values for the keys that exist."""

    @abstractmethod
    async def set(self, items: dict[str, Any]) -> None:
        """Store values, replacing whatever was there."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every stored key."""


class MemoryStore(ConfigStore):
    """In-process store, used for tests and ``STORE_BACKEND=memory``."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        super().__init__()
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: dict[str, Any]) -> None:
        self._data.update(copy.deepcopy(items))
        await self._notify(set(items))

    async def clear(self) -> None:
        keys = set(self._data)
        self._data.clear()
        await self._notify(keys)


class JsonFileStore(ConfigStore):
    """Single JSON document on disk, re-read on every access."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Config file {self.path} is not valid JSON, treating as empty: {e}")
            return {}
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Failed to write {self.path}: {e}") from e

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        data = self._read()
        return {k: data[k] for k in keys if k in data}

    async def set(self, items: dict[str, Any]) -> None:
        data = self._read()
        data.update(items)
        self._write(data)
        await self._notify(set(items))

    async def clear(self) -> None:
        keys = set(self._read())
        self._write({})
        await self._notify(keys)


class SupabaseStore(ConfigStore):
    """Key/value rows in a Supabase table, shared between machines.

    Expects a table with a text primary key ``key`` and a jsonb ``value``.
    """

    def __init__(self, url: str, api_key: str, table: str = "reminder_config"):
        super().__init__()
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.api_key = api_key

    def _headers(self, prefer: str = "return=minimal") -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": prefer,
        }

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self.endpoint,
                    headers=self._headers(),
                    params={"select": "key,value", "key": f"in.({','.join(keys)})"},
                    timeout=10
                )
                response.raise_for_status()
                rows = response.json()
        except Exception as e:
            logger.error(f"Failed to read config from Supabase: {e}")
            raise StoreError(str(e)) from e
        return {row["key"]: row["value"] for row in rows}

    async def set(self, items: dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.endpoint,
                    headers=self._headers("resolution=merge-duplicates,return=minimal"),
                    json=[{"key": k, "value": v} for k, v in items.items()],
                    timeout=10
                )
                response.raise_for_status()
        except Exception as e:
            logger.error(f"Failed to write config to Supabase: {e}")
            raise StoreError(str(e)) from e
        logger.debug(f"Saved {sorted(items)} to Supabase")
        await self._notify(set(items))

    async def clear(self) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.delete(
                    self.endpoint,
                    headers=self._headers("return=representation"),
                    params={"key": "not.is.null"},
                    timeout=10
                )
                response.raise_for_status()
                removed = {row["key"] for row in response.json()}
        except Exception as e:
            logger.error(f"Failed to clear config in Supabase: {e}")
            raise StoreError(str(e)) from e
        await self._notify(removed)


def create_store(backend: Optional[str] = None) -> ConfigStore:
    """Build the store selected by ``STORE_BACKEND``."""
    backend = (backend or config.STORE_BACKEND).lower()

    if backend == "memory":
        return MemoryStore()

    if backend == "supabase":
        if config.SUPABASE_URL and config.SUPABASE_KEY:
            return SupabaseStore(config.SUPABASE_URL, config.SUPABASE_KEY, config.SUPABASE_TABLE)
        logger.warning("Supabase not configured, falling back to local config file")

    return JsonFileStore(config.STORE_PATH)
