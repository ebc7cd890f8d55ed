"""Pytest configuration and fixtures."""

import os
import sys
from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch
from zoneinfo import ZoneInfo

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from posture.accessor import ConfigAccessor
from posture.dispatcher import NotificationDispatcher
from posture.push import PushSubscriptionManager
from posture.runtime import ReminderRuntime
from posture.store import MemoryStore

LONDON = ZoneInfo("Europe/London")

# 2024-03-06 is a Wednesday
WEDNESDAY_10AM = datetime(2024, 3, 6, 10, 0, tzinfo=LONDON)


@pytest.fixture
def tz():
    return LONDON


@pytest.fixture
def now():
    return WEDNESDAY_10AM


@pytest.fixture
def memory_store():
    """Fresh in-memory config store."""
    return MemoryStore()


@pytest.fixture
def accessor(memory_store):
    return ConfigAccessor(memory_store)


@pytest.fixture
def mock_dispatcher():
    """Dispatcher whose channels are recorded instead of shown."""
    dispatcher = Mock(spec=NotificationDispatcher)
    dispatcher.dispatch = AsyncMock(return_value={"system": True})
    return dispatcher


@pytest.fixture
def mock_push_manager():
    manager = Mock(spec=PushSubscriptionManager)
    manager.ensure_subscription = AsyncMock(return_value=None)
    manager.verify_token = AsyncMock(return_value=False)
    return manager


@pytest.fixture
def runtime(accessor, mock_dispatcher, mock_push_manager, tz, now):
    """Runtime on an unstarted scheduler with a fixed clock."""
    return ReminderRuntime(
        accessor=accessor,
        scheduler=AsyncIOScheduler(timezone=tz),
        dispatcher=mock_dispatcher,
        push_manager=mock_push_manager,
        tz=tz,
        clock=lambda: now,
    )


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client."""
    with patch('httpx.AsyncClient') as mock:
        client = AsyncMock()
        mock.return_value.__aenter__.return_value = client
        yield client
