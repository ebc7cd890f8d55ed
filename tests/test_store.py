"""Tests for the config stores and the typed accessor."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from posture.accessor import (
    PUSH_SUBSCRIPTION_KEY,
    SCHEDULE_KEY,
    SETTINGS_KEY,
    ConfigAccessor,
    Snapshot,
    repair_updates,
)
from posture.models import DEFAULTS, Action, NotificationType, ScheduleEntry
from posture.store import JsonFileStore, MemoryStore, StoreError, SupabaseStore, create_store


class TestMemoryStore:

    @pytest.mark.asyncio
    async def test_get_only_existing_keys(self):
        store = MemoryStore({"a": 1})
        assert await store.get(["a", "b"]) == {"a": 1}

    @pytest.mark.asyncio
    async def test_values_are_copies(self):
        store = MemoryStore()
        value = {"nested": [1]}
        await store.set({"a": value})
        value["nested"].append(2)
        assert (await store.get(["a"]))["a"] == {"nested": [1]}

    @pytest.mark.asyncio
    async def test_listeners_receive_changed_keys(self):
        store = MemoryStore({"x": 1})
        seen = []
        store.add_listener(lambda keys: seen.append(keys))
        async_listener = AsyncMock()
        store.add_listener(async_listener)

        await store.set({"a": 1, "b": 2})
        await store.clear()

        assert seen == [{"a", "b"}, {"x", "a", "b"}]
        assert async_listener.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_write(self):
        store = MemoryStore()
        store.add_listener(Mock(side_effect=RuntimeError("boom")))
        after = Mock()
        store.add_listener(after)

        await store.set({"a": 1})

        assert await store.get(["a"]) == {"a": 1}
        after.assert_called_once_with({"a"})

    @pytest.mark.asyncio
    async def test_removed_listener_not_called(self):
        store = MemoryStore()
        listener = Mock()
        store.add_listener(listener)
        store.remove_listener(listener)
        await store.set({"a": 1})
        listener.assert_not_called()


class TestJsonFileStore:

    @pytest.mark.asyncio
    async def test_persists_to_disk(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        store = JsonFileStore(path)
        await store.set({SCHEDULE_KEY: [], SETTINGS_KEY: {"notificationType": "system"}})

        assert json.loads(path.read_text(encoding="utf-8"))[SCHEDULE_KEY] == []
        # A second instance sees the same data
        assert await JsonFileStore(path).get([SETTINGS_KEY]) == {SETTINGS_KEY: {"notificationType": "system"}}

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        assert await JsonFileStore(tmp_path / "none.json").get([SCHEDULE_KEY]) == {}

    @pytest.mark.asyncio
    async def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(path)
        assert await store.get([SCHEDULE_KEY]) == {}

        await store.set({"a": 1})
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": 1}

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path):
        store = JsonFileStore(tmp_path / "config.json")
        await store.set({"a": 1, "b": 2})
        await store.clear()
        assert await store.get(["a", "b"]) == {}

    @pytest.mark.asyncio
    async def test_unwritable_path_raises_store_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = JsonFileStore(blocker / "config.json")
        with pytest.raises(StoreError):
            await store.set({"a": 1})


class TestSupabaseStore:

    @pytest.mark.asyncio
    async def test_get(self, mock_httpx_client):
        mock_httpx_client.get.return_value = Mock(
            raise_for_status=Mock(),
            json=Mock(return_value=[{"key": SCHEDULE_KEY, "value": []}])
        )
        store = SupabaseStore("https://example.supabase.co/", "key")

        assert await store.get([SCHEDULE_KEY, SETTINGS_KEY]) == {SCHEDULE_KEY: []}
        args, kwargs = mock_httpx_client.get.call_args
        assert args[0] == "https://example.supabase.co/rest/v1/reminder_config"
        assert kwargs["params"]["key"] == f"in.({SCHEDULE_KEY},{SETTINGS_KEY})"

    @pytest.mark.asyncio
    async def test_set_upserts_and_notifies(self, mock_httpx_client):
        mock_httpx_client.post.return_value = Mock(raise_for_status=Mock())
        store = SupabaseStore("https://example.supabase.co", "key")
        listener = Mock()
        store.add_listener(listener)

        await store.set({SCHEDULE_KEY: []})

        kwargs = mock_httpx_client.post.call_args.kwargs
        assert kwargs["json"] == [{"key": SCHEDULE_KEY, "value": []}]
        assert "merge-duplicates" in kwargs["headers"]["Prefer"]
        listener.assert_called_once_with({SCHEDULE_KEY})

    @pytest.mark.asyncio
    async def test_failure_raises_store_error(self, mock_httpx_client):
        mock_httpx_client.get.side_effect = RuntimeError("connection refused")
        store = SupabaseStore("https://example.supabase.co", "key")
        with pytest.raises(StoreError):
            await store.get([SCHEDULE_KEY])


class TestCreateStore:

    def test_memory(self):
        assert isinstance(create_store("memory"), MemoryStore)

    def test_supabase_unconfigured_falls_back_to_file(self, monkeypatch, tmp_path):
        import config
        monkeypatch.setattr(config, "SUPABASE_URL", None)
        monkeypatch.setattr(config, "STORE_PATH", tmp_path / "config.json")
        store = create_store("supabase")
        assert isinstance(store, JsonFileStore)
        assert store.path == tmp_path / "config.json"


class TestConfigAccessor:

    @pytest.mark.asyncio
    async def test_reads_default_when_empty(self, accessor):
        schedule = await accessor.get_schedule()
        settings = await accessor.get_settings()
        assert [e.time for e in schedule] == ["09:00", "11:00", "14:00"]
        assert settings == DEFAULTS.settings

    @pytest.mark.asyncio
    async def test_write_then_read(self, accessor):
        entries = [ScheduleEntry(time="08:30", action=Action.STANDING, id="x")]
        await accessor.set_schedule(entries)
        settings = await accessor.get_settings()
        settings.notification_type = NotificationType.SYSTEM
        await accessor.set_settings(settings)

        assert await accessor.get_schedule() == entries
        assert (await accessor.get_settings()).notification_type == NotificationType.SYSTEM

    @pytest.mark.asyncio
    async def test_empty_schedule_is_kept(self, accessor):
        await accessor.set_schedule([])
        assert await accessor.get_schedule() == []

    @pytest.mark.asyncio
    async def test_repair_fills_missing(self, memory_store, accessor):
        await memory_store.set({SETTINGS_KEY: {"notificationType": "alert"}})

        written = await accessor.repair()

        assert set(written) == {SCHEDULE_KEY, SETTINGS_KEY}
        stored = await memory_store.get([SETTINGS_KEY])
        assert stored[SETTINGS_KEY]["notificationType"] == "alert"
        assert stored[SETTINGS_KEY]["workHours"]["start"] == "09:00"
        assert await accessor.repair() == {}

    def test_repair_updates_complete_snapshot(self):
        snap = Snapshot(schedule=[], settings=DEFAULTS.settings.to_dict())
        assert repair_updates(snap) == {}

    @pytest.mark.asyncio
    async def test_reset_keeps_push_subscription(self, memory_store, accessor):
        subscription = {"endpoint": "http://localhost/push/abc", "keys": {"auth": "x"}}
        await memory_store.set({
            SCHEDULE_KEY: [],
            "stale": True,
            PUSH_SUBSCRIPTION_KEY: subscription,
        })

        await accessor.reset()

        data = await memory_store.get([SCHEDULE_KEY, "stale", PUSH_SUBSCRIPTION_KEY])
        assert len(data[SCHEDULE_KEY]) == 3
        assert "stale" not in data
        assert data[PUSH_SUBSCRIPTION_KEY] == subscription
