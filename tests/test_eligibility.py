"""Tests for the work day / work hour filter."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from posture.eligibility import is_eligible
from posture.models import WEEKDAYS, DEFAULTS

LONDON = ZoneInfo("Europe/London")


def at(hour, minute, day=6):
    """A time on Wednesday 2024-03-06 (or another March 2024 day)."""
    return datetime(2024, 3, day, hour, minute, tzinfo=LONDON)


def settings(days=None, start="09:00", end="18:00", hours_enabled=False, notify="both"):
    return {
        "notificationType": notify,
        "workDays": {day: day in days for day in WEEKDAYS} if days is not None else {day: True for day in WEEKDAYS},
        "workHours": {"start": start, "end": end, "enabled": hours_enabled},
    }


class TestWorkDays:
    """Work day gate."""

    def test_work_day_allows(self):
        assert is_eligible(at(10, 0), settings(days={"wednesday"})) is True

    def test_non_work_day_blocks(self):
        # Thursday 2024-03-07
        assert is_eligible(at(10, 0, day=7), settings(days={"wednesday"})) is False

    def test_no_work_days_blocks_everything(self):
        for day in range(4, 11):
            assert is_eligible(at(12, 0, day=day), settings(days=set())) is False

    def test_weekday_mapping(self):
        """Monday 2024-03-04 through Sunday 2024-03-10."""
        for offset, name in enumerate(WEEKDAYS):
            assert is_eligible(at(12, 0, day=4 + offset), settings(days={name})) is True
            others = set(WEEKDAYS) - {name}
            assert is_eligible(at(12, 0, day=4 + offset), settings(days=others)) is False


class TestWorkHours:
    """Work hour window, inclusive at both ends."""

    @pytest.mark.parametrize("hour,minute,expected", [
        (8, 59, False),
        (9, 0, True),
        (13, 30, True),
        (18, 0, True),
        (18, 1, False),
    ])
    def test_window_boundaries(self, hour, minute, expected):
        assert is_eligible(at(hour, minute), settings(hours_enabled=True)) is expected

    def test_disabled_window_ignored(self):
        assert is_eligible(at(3, 0), settings(hours_enabled=False)) is True

    def test_inverted_window_is_empty(self):
        """end < start does not wrap past midnight."""
        s = settings(start="22:00", end="06:00", hours_enabled=True)
        assert is_eligible(at(23, 0), s) is False
        assert is_eligible(at(2, 0), s) is False
        assert is_eligible(at(12, 0), s) is False

    def test_day_checked_before_hours(self):
        s = settings(days={"monday"}, hours_enabled=True)
        assert is_eligible(at(12, 0), s) is False


class TestMissingSettings:
    """Partial or absent settings fall back to defaults."""

    def test_none_uses_defaults(self):
        assert is_eligible(at(3, 0), None) is True

    def test_partial_settings(self):
        assert is_eligible(at(3, 0), {"workHours": {"enabled": True}}) is False
        assert is_eligible(at(10, 0), {"workHours": {"enabled": True}}) is True

    def test_settings_object(self):
        s = DEFAULTS.settings
        s.work_days["wednesday"] = False
        assert is_eligible(at(10, 0), s) is False
