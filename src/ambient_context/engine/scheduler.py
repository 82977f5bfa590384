"""Poll-tier scheduler — trade inference freshness against battery drain.

A tier is chosen from the stable state, conflicts, confidence and device
power state; the tier's base interval is then scaled by confidence,
battery, charging and how long the current state has been held.
"""

from __future__ import annotations

from ambient_context.engine.models import (
    ContextState,
    DeviceSignal,
    EnvironmentResolution,
    MovementResolution,
    MovementType,
    PollTier,
)
from ambient_context.engine.signals import clamp

BASE_INTERVALS_MS: dict[PollTier, int] = {
    PollTier.AGGRESSIVE: 15_000,
    PollTier.ACTIVE: 45_000,
    PollTier.MONITORING: 120_000,
    PollTier.BACKGROUND: 420_000,
    PollTier.SLEEP: 1_200_000,
    PollTier.POWER_SAVE: 2_400_000,
}

MIN_POLL_MS = 10_000
MAX_POLL_MS = 3_600_000

_LOW_BATTERY = 0.15
_SETTLED_STATE_MS = 30 * 60_000
_FRESH_STATE_MS = 5 * 60_000


def _battery_level(device: DeviceSignal | None) -> float:
    if device is None or device.battery_level is None:
        return 1.0
    return device.battery_level


def determine_poll_tier(
    state: ContextState,
    movement: MovementResolution,
    environment: EnvironmentResolution,
    confidence: float,
    device: DeviceSignal | None = None,
) -> PollTier:
    """Select a polling tier; the first matching rule wins."""
    if (device is not None and device.is_power_save_mode) or _battery_level(device) < _LOW_BATTERY:
        return PollTier.POWER_SAVE
    if state == ContextState.SLEEPING:
        return PollTier.SLEEP
    if state in (ContextState.COMMUTING, ContextState.GYM_WORKOUT):
        return PollTier.MONITORING
    if movement.conflicts or environment.conflicts:
        return PollTier.AGGRESSIVE
    if confidence < 0.45:
        return PollTier.ACTIVE
    if movement.movement_type not in (MovementType.STATIONARY, MovementType.UNKNOWN):
        return PollTier.MONITORING
    if confidence > 0.85:
        return PollTier.BACKGROUND
    return PollTier.ACTIVE


def compute_next_poll_ms(
    tier: PollTier,
    confidence: float,
    device: DeviceSignal | None = None,
    state_duration_ms: int = 0,
) -> int:
    """Concrete delay until the next poll, clamped to [10 s, 1 h]."""
    interval = float(BASE_INTERVALS_MS[tier])

    if confidence >= 0.85:
        interval *= 1.4
    elif confidence < 0.5:
        interval *= 0.7

    battery = _battery_level(device)
    if battery < 0.25:
        interval *= 1.4
    elif battery < 0.4:
        interval *= 1.2

    if device is not None and device.is_charging:
        interval *= 0.85

    if state_duration_ms > _SETTLED_STATE_MS:
        interval *= 1.2
    elif state_duration_ms < _FRESH_STATE_MS:
        interval *= 0.85

    return int(clamp(round(interval), MIN_POLL_MS, MAX_POLL_MS))
