"""Render reminders through the system and in-page alert channels.

Each channel is attempted independently; a failure is logged and never
stops the other channel.
"""

import asyncio
import sys
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from playwright.async_api import async_playwright
from plyer import notification as plyer_notification

import config
from logger import logger
from .models import Channels

APP_NAME = "Standing Desk"

# Pages where injecting an alert is unsupported or pointless
EXCLUDED_URL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "chrome-search://",
    "chrome-untrusted://",
    "devtools://",
    "edge://",
    "about:",
)


class SystemNotifier(ABC):
    """Native notification backend."""

    name = "system"

    @abstractmethod
    async def show(self, title: str, message: str) -> None:
        """Show a notification; raise on failure."""


class DesktopNotifier(SystemNotifier):
    """Desktop notification via plyer.

    libnotify treats ``timeout=0`` as "until dismissed". The Windows balloon
    is removed as soon as plyer returns, and plyer only waits when given a
    positive timeout, so Windows gets ``NOTIFICATION_TIMEOUT`` seconds.
    """

    name = "desktop"

    def __init__(self, platform: Optional[str] = None, timeout: Optional[int] = None):
        platform = platform or sys.platform
        if timeout is None:
            timeout = config.NOTIFICATION_TIMEOUT if platform == "win32" else 0
        self.timeout = timeout

    async def show(self, title: str, message: str) -> None:
        self._chime()
        loop = asyncio.get_running_loop()
        # Returns once the notification is gone on Windows, immediately elsewhere
        await loop.run_in_executor(
            None,
            lambda: plyer_notification.notify(
                title=title,
                message=message,
                app_name=APP_NAME,
                timeout=self.timeout,
            )
        )

    def _chime(self) -> None:
        """Ring the terminal bell as an extra audio cue; may fail silently."""
        try:
            if sys.stdout is not None and sys.stdout.isatty():
                sys.stdout.write("\a")
                sys.stdout.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Audio cue unavailable: {e}")


class NtfyNotifier(SystemNotifier):
    """Push to an ntfy topic at urgent priority so the phone rings."""

    name = "ntfy"

    def __init__(self, server: str, topic: str):
        self.server = server.rstrip("/")
        self.topic = topic

    async def show(self, title: str, message: str) -> None:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.server,
                json={
                    "topic": self.topic,
                    "title": title,
                    "message": message,
                    "priority": 5,
                    "tags": ["chair", "bell"],
                },
                timeout=10
            )
            response.raise_for_status()


class ConsoleNotifier(SystemNotifier):
    """Log-only backend for headless machines."""

    name = "console"

    async def show(self, title: str, message: str) -> None:
        logger.info(f"[NOTIFICATION] {title}: {message}")


def is_content_page(url: Optional[str]) -> bool:
    """True for normal web pages an alert can be shown on."""
    return bool(url) and not url.startswith(EXCLUDED_URL_PREFIXES)


def _leave_open(dialog) -> None:
    """Dialog handler that leaves the alert for the user to dismiss."""


class BrowserAlert:
    """Blocking ``alert()`` in the user's visible Chrome tab.

    Chrome must run with ``--remote-debugging-port``; ``cdp_url`` points at
    it (e.g. ``http://localhost:9222``).
    """

    def __init__(self, cdp_url: Optional[str], timeout: Optional[float] = None):
        self.cdp_url = cdp_url
        self.timeout = config.BROWSER_TIMEOUT if timeout is None else timeout

    async def show(self, message: str) -> bool:
        """Returns True if an alert was scheduled on a page."""
        if not self.cdp_url:
            logger.info("BROWSER_CDP_URL not configured, skipping in-page alert")
            return False

        async with async_playwright() as p:
            browser = await p.chromium.connect_over_cdp(self.cdp_url, timeout=self.timeout * 1000)
            try:
                return await asyncio.wait_for(self._alert(browser, message), self.timeout)
            except asyncio.TimeoutError:
                # A tab still showing the previous alert never answers evaluate()
                logger.warning(f"In-page alert timed out after {self.timeout}s")
                return False
            finally:
                await browser.close()

    async def _alert(self, browser, message: str) -> bool:
        page = await self._active_page(browser)
        if page is None:
            logger.info("No active web page to alert on")
            return False

        # Playwright auto-dismisses dialogs on pages without a dialog listener
        page.on("dialog", _leave_open)
        # Deferred so evaluate() returns instead of waiting on the dialog
        await page.evaluate("text => { setTimeout(() => alert(text), 0); }", message)
        logger.info(f"Alert shown on {page.url}")
        return True

    async def _active_page(self, browser):
        visible = []
        for context in browser.contexts:
            for page in context.pages:
                if not is_content_page(page.url):
                    continue
                try:
                    state = await page.evaluate("() => [document.visibilityState, document.hasFocus()]")
                except Exception as e:
                    logger.debug(f"Could not inspect {page.url}: {e}")
                    continue
                if state[0] != "visible":
                    continue
                if state[1]:
                    return page
                visible.append(page)
        return visible[0] if visible else None


class NotificationDispatcher:
    """Deliver one reminder through the requested channels.

    Channels run concurrently: a Windows balloon holds its executor thread
    for the whole display time and must not delay the in-page alert.
    """

    def __init__(self, system: SystemNotifier, alert: Optional[BrowserAlert] = None):
        self.system = system
        self.alert = alert

    async def dispatch(
        self,
        title: str,
        message: str,
        channels: Channels,
        alert_message: Optional[str] = None
    ) -> dict[str, bool]:
        """Deliver through each enabled channel.

        Args:
            title: Notification title (system channel only)
            message: Reminder text
            channels: Which channels to use
            alert_message: Text for the in-page alert, defaults to ``message``

        Returns:
            Channel name -> delivered, for the channels that were attempted
        """
        attempts = {}
        if channels.system:
            attempts["system"] = self._show_system(title, message)
        if channels.alert:
            attempts["alert"] = self._show_alert(alert_message or message)

        delivered = await asyncio.gather(*attempts.values())
        return dict(zip(attempts, delivered))

    async def _show_system(self, title: str, message: str) -> bool:
        try:
            await self.system.show(title, message)
        except Exception as e:
            logger.error(f"System notification failed ({self.system.name}): {e}")
            return False
        logger.info(f"System notification shown via {self.system.name}: {message}")
        return True

    async def _show_alert(self, message: str) -> bool:
        if self.alert is None:
            return False
        try:
            return await self.alert.show(message)
        except Exception as e:
            logger.error(f"In-page alert failed: {e}")
            return False


def create_system_notifier(kind: Optional[str] = None) -> SystemNotifier:
    """Build the backend selected by ``SYSTEM_NOTIFIER``."""
    kind = (kind or config.SYSTEM_NOTIFIER).lower()
    if kind == "ntfy":
        if config.NTFY_TOPIC:
            return NtfyNotifier(config.NTFY_SERVER, config.NTFY_TOPIC)
        logger.warning("NTFY_TOPIC not configured, falling back to console notifications")
        return ConsoleNotifier()
    if kind == "console":
        return ConsoleNotifier()
    return DesktopNotifier()


def create_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(create_system_notifier(), BrowserAlert(config.BROWSER_CDP_URL))
