"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from ambient_context.engine.models import (
    ActivitySignal,
    ContextSnapshot,
    DeviceSignal,
    LocationSignal,
    MotionSignal,
    SignalSnapshot,
    TemporalSignal,
)

NOW_MS = 1_760_000_000_000


@pytest.fixture
def now_ms() -> int:
    return NOW_MS


@pytest.fixture
def home_still_night_signals() -> SignalSnapshot:
    """Phone lying still at home at 2 am, no GPS."""
    return SignalSnapshot(
        location=LocationSignal(is_home=True),
        motion=MotionSignal(variance=0.005),
        temporal=TemporalSignal(hour=2),
    )


@pytest.fixture
def in_vehicle_signals(now_ms: int) -> SignalSnapshot:
    return SignalSnapshot(activity=ActivitySignal(type="IN_VEHICLE", timestamp=now_ms))


@pytest.fixture
def running_motion_signals() -> SignalSnapshot:
    return SignalSnapshot(motion=MotionSignal(variance=0.3))


@pytest.fixture
def low_battery_device() -> DeviceSignal:
    return DeviceSignal(battery_level=0.1, is_power_save_mode=True)


@pytest.fixture
def snapshot_factory(now_ms: int) -> Callable[..., ContextSnapshot]:
    """Build a previous/candidate snapshot with sensible defaults."""

    def _make(**overrides: Any) -> ContextSnapshot:
        fields: dict[str, Any] = {"updated_at": now_ms}
        fields.update(overrides)
        return ContextSnapshot(**fields)

    return _make
