"""Tests for Web Push subscription handling."""

import base64
from unittest.mock import Mock

import pytest

from posture.accessor import PUSH_SUBSCRIPTION_KEY
from posture.push import PushSubscriptionManager, decode_application_server_key, url_b64_to_bytes

VALID_KEY = base64.urlsafe_b64encode(b"\x04" + bytes(range(64))).decode().rstrip("=")
BACKEND = "https://push.example.com/subscribe"


def manager(accessor, key=VALID_KEY, subscribe_url=""):
    return PushSubscriptionManager(
        accessor,
        vapid_public_key=key,
        subscribe_url=subscribe_url,
        endpoint_base="http://localhost:8110/push/",
    )


class TestKeyDecoding:

    def test_padding_added(self):
        assert url_b64_to_bytes("YQ") == b"a"

    def test_valid_key(self):
        key = decode_application_server_key(VALID_KEY)
        assert len(key) == 65
        assert key[0] == 0x04

    @pytest.mark.parametrize("value", [
        "not base64!!",
        base64.urlsafe_b64encode(b"\x04" * 10).decode(),
        base64.urlsafe_b64encode(b"\x02" + bytes(64)).decode(),
    ])
    def test_invalid_keys(self, value):
        with pytest.raises(ValueError):
            decode_application_server_key(value)


class TestEnsureSubscription:

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, accessor):
        assert await manager(accessor, key="").ensure_subscription() is None
        assert await accessor.get_push_subscription() is None

    @pytest.mark.asyncio
    async def test_creates_and_persists(self, accessor):
        subscription = await manager(accessor).ensure_subscription()

        assert subscription["endpoint"].startswith("http://localhost:8110/push/")
        assert subscription["userVisibleOnly"] is True
        assert subscription["keys"]["auth"]
        assert await accessor.get_push_subscription() == subscription

    @pytest.mark.asyncio
    async def test_reuses_existing(self, memory_store, accessor):
        existing = {"endpoint": "http://localhost:8110/push/abc", "keys": {"auth": "x"}}
        await memory_store.set({PUSH_SUBSCRIPTION_KEY: existing})

        assert await manager(accessor).ensure_subscription() == existing

    @pytest.mark.asyncio
    async def test_registers_with_backend(self, accessor, mock_httpx_client):
        mock_httpx_client.post.return_value = Mock(raise_for_status=Mock())

        subscription = await manager(accessor, subscribe_url=BACKEND).ensure_subscription()

        args, kwargs = mock_httpx_client.post.call_args
        assert args[0] == BACKEND
        assert kwargs["json"]["endpoint"] == subscription["endpoint"]
        assert kwargs["json"]["keys"] == subscription["keys"]

    @pytest.mark.asyncio
    async def test_backend_failure_returns_none(self, accessor, mock_httpx_client):
        mock_httpx_client.post.side_effect = RuntimeError("backend down")
        assert await manager(accessor, subscribe_url=BACKEND).ensure_subscription() is None

    @pytest.mark.asyncio
    async def test_invalid_key_returns_none(self, accessor):
        assert await manager(accessor, key="AAAA").ensure_subscription() is None
        assert await accessor.get_push_subscription() is None


class TestVerifyToken:

    @pytest.mark.asyncio
    async def test_matches_current_endpoint(self, accessor):
        push = manager(accessor)
        subscription = await push.ensure_subscription()
        token = subscription["endpoint"].rsplit("/", 1)[-1]

        assert await push.verify_token(token) is True
        assert await push.verify_token("wrong") is False

    @pytest.mark.asyncio
    async def test_no_subscription(self, accessor):
        assert await manager(accessor).verify_token("anything") is False

    @pytest.mark.asyncio
    async def test_non_ascii_token_rejected(self, memory_store, accessor):
        await memory_store.set({PUSH_SUBSCRIPTION_KEY: {"endpoint": "http://x/push/abc", "keys": {"auth": "x"}}})
        push = manager(accessor)

        assert await push.verify_token("ábc") is False
        assert await push.verify_token("é") is False
        assert await push.verify_token("abc") is True
