"""Web Push subscription management.

The service is its own push endpoint: a subscription is an endpoint URL on
this service's ``/push/{token}`` route plus an auth secret. It is created
once, persisted in the config store and forwarded to the backend that sends
pushes. Nothing here may block installation or alarm setup - every failure
is logged and turns into a ``None`` result.
"""

import base64
import binascii
import hmac
import secrets
from typing import Optional

import httpx

import config
from logger import logger
from utils import redact_endpoint
from .accessor import ConfigAccessor

# Uncompressed P-256 public key: 0x04 || X (32 bytes) || Y (32 bytes)
VAPID_KEY_LENGTH = 65


def url_b64_to_bytes(value: str) -> bytes:
    """Decode url-safe base64, adding any missing padding.

    Raises:
        ValueError: If the value is not valid base64
    """
    padding = "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(value + padding)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid url-safe base64: {e}") from e


def decode_application_server_key(value: str) -> bytes:
    """Decode and validate a VAPID public key."""
    key = url_b64_to_bytes(value.strip())
    if len(key) != VAPID_KEY_LENGTH or key[0] != 0x04:
        raise ValueError(f"VAPID public key must be a {VAPID_KEY_LENGTH}-byte uncompressed P-256 point")
    return key


class PushSubscriptionManager:
    """Creates, persists and registers the push subscription."""

    def __init__(
        self,
        accessor: ConfigAccessor,
        vapid_public_key: Optional[str] = None,
        subscribe_url: Optional[str] = None,
        endpoint_base: Optional[str] = None,
    ):
        self.accessor = accessor
        self.vapid_public_key = config.VAPID_PUBLIC_KEY if vapid_public_key is None else vapid_public_key
        self.subscribe_url = config.BACKEND_SUBSCRIBE_URL if subscribe_url is None else subscribe_url
        self.endpoint_base = (endpoint_base or config.PUSH_ENDPOINT_BASE).rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.vapid_public_key)

    async def get_subscription(self) -> Optional[dict]:
        return await self.accessor.get_push_subscription()

    async def subscribe(self, application_server_key: bytes) -> dict:
        """Issue a new subscription for user-visible pushes only."""
        token = secrets.token_urlsafe(24)
        subscription = {
            "endpoint": f"{self.endpoint_base}/{token}",
            "expirationTime": None,
            "userVisibleOnly": True,
            "applicationServerKey": base64.urlsafe_b64encode(application_server_key).decode().rstrip("="),
            "keys": {"auth": secrets.token_urlsafe(16)},
        }
        await self.accessor.set_push_subscription(subscription)
        return subscription

    async def ensure_subscription(self) -> Optional[dict]:
        """Reuse or create the subscription and register it with the backend.

        Returns:
            The subscription, or None if push is disabled or anything failed
        """
        if not self.enabled:
            logger.info("VAPID_PUBLIC_KEY not configured, Web Push disabled")
            return None

        try:
            logger.info("Setting up Web Push subscription...")
            subscription = await self.get_subscription()
            if subscription is None:
                subscription = await self.subscribe(decode_application_server_key(self.vapid_public_key))
                logger.info(f"Web Push subscription created: {redact_endpoint(subscription['endpoint'])}")
            else:
                logger.info(f"Reusing Web Push subscription: {redact_endpoint(subscription.get('endpoint', ''))}")

            if self.subscribe_url:
                await self._register_with_backend(subscription)
            return subscription

        except Exception as e:
            logger.error(f"Web Push subscription failed: {e}")
            return None

    async def _register_with_backend(self, subscription: dict) -> None:
        logger.info("Sending subscription to backend...")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.subscribe_url,
                json={"endpoint": subscription["endpoint"], "expirationTime": subscription.get("expirationTime"), "keys": subscription["keys"]},
                timeout=10
            )
            response.raise_for_status()
        logger.info("Subscription sent to backend")

    async def verify_token(self, token: str) -> bool:
        """Check that an inbound push targets the current subscription."""
        subscription = await self.get_subscription()
        if not subscription:
            return False
        expected = subscription.get("endpoint", "").rstrip("/").rsplit("/", 1)[-1]
        return bool(expected) and hmac.compare_digest(expected.encode(), token.encode())
