"""Movement resolver — fuse speed, GPS delta, activity and motion variance.

Each available signal adds evidence to either a *moving* or a
*stationary* score, weighted by how fresh the signal is.  Some signals
also pin the movement type directly (``in_vehicle`` always means
vehicle).  When nothing pins it, the type is derived from whichever
score wins by a clear margin.

Evidence weights
----------------
====================  ===========================  ==================
Signal                Condition                    Evidence
====================  ===========================  ==================
GPS speed             ≥ 18 km/h                    moving +0.70, vehicle
                      ≥ 7 km/h                     moving +0.45
                      ≥ 3 km/h                     moving +0.25
                      ≤ 0.5 km/h                   stationary +0.35
GPS delta             > 5 m/s                      moving +0.50, vehicle
                      > 1.5 m/s                    moving +0.30, walking
                      < 0.3 m/s                    stationary +0.25
Activity              in_vehicle                   moving +0.70, vehicle
                      on_bicycle                   moving +0.50
                      running                      moving +0.55, running
                      walking / on_foot            moving +0.45, walking
                      still                        stationary +0.60
Accelerometer         variance < 0.01              stationary +0.35
                      < 0.05                       moving +0.20
                      < 0.2                        moving +0.35, walking
                      ≥ 0.2                        moving +0.50, running
====================  ===========================  ==================
"""

from __future__ import annotations

import structlog

from ambient_context.engine.models import (
    ActivityType,
    ContextSnapshot,
    MovementResolution,
    MovementType,
    SignalSnapshot,
)
from ambient_context.engine.signals import (
    clamp01,
    distance_meters,
    freshness_weight,
    is_finite_number,
    signal_age_ms,
    speed_kmh,
)

logger = structlog.get_logger(__name__)

_PRIOR = 0.1
_DECISION_MARGIN = 0.25
_EPSILON = 0.001

# Speed (km/h) at which a still activity label is contradictory
STILL_VS_SPEED_KMH = 10
# Speed (km/h) at which score-derived movement is classed as vehicle
_VEHICLE_FALLBACK_KMH = 10

CONFLICT_ACTIVITY_STILL_VS_SPEED = "activity_still_vs_speed"


class _Evidence:
    """Mutable accumulator used while a single resolution is in progress."""

    def __init__(self) -> None:
        self.moving = _PRIOR
        self.stationary = _PRIOR
        self.movement_type = MovementType.UNKNOWN
        self.signals_used: list[str] = []

    def use(self, tag: str) -> None:
        self.signals_used.append(tag)

    def pin(self, movement_type: MovementType) -> None:
        """Set the movement type unless a vehicle has already been detected."""
        if self.movement_type != MovementType.VEHICLE:
            self.movement_type = movement_type


def _add_gps_speed(ev: _Evidence, kmh: float | None, weight: float) -> None:
    if kmh is None or weight <= 0:
        return
    ev.use("gps_speed")
    if kmh >= 18:
        ev.moving += 0.7 * weight
        ev.movement_type = MovementType.VEHICLE
    elif kmh >= 7:
        ev.moving += 0.45 * weight
    elif kmh >= 3:
        ev.moving += 0.25 * weight
    elif kmh <= 0.5:
        ev.stationary += 0.35 * weight


def _add_gps_delta(
    ev: _Evidence,
    signals: SignalSnapshot,
    previous: ContextSnapshot | None,
    now_ms: int,
) -> None:
    if signals.gps is None or signals.gps.coords is None:
        return
    if previous is None or previous.location_coords is None or not previous.updated_at:
        return

    dist = distance_meters(previous.location_coords, signals.gps.coords)
    if dist is None:
        return
    elapsed_ms = max(1, now_ms - previous.updated_at)
    rate = dist / (elapsed_ms / 1000)

    ev.use("gps_delta")
    if rate > 5:
        ev.moving += 0.5
        ev.movement_type = MovementType.VEHICLE
    elif rate > 1.5:
        ev.moving += 0.3
        ev.pin(MovementType.WALKING)
    elif rate < 0.3:
        ev.stationary += 0.25


def _add_activity(ev: _Evidence, activity: ActivityType | None, weight: float) -> None:
    if activity is None or weight <= 0:
        return
    ev.use("activity")
    if activity == ActivityType.IN_VEHICLE:
        ev.moving += 0.7 * weight
        ev.movement_type = MovementType.VEHICLE
    elif activity == ActivityType.ON_BICYCLE:
        ev.moving += 0.5 * weight
    elif activity == ActivityType.RUNNING:
        ev.moving += 0.55 * weight
        ev.pin(MovementType.RUNNING)
    elif activity in (ActivityType.WALKING, ActivityType.ON_FOOT):
        ev.moving += 0.45 * weight
        ev.pin(MovementType.WALKING)
    elif activity == ActivityType.STILL:
        ev.stationary += 0.6 * weight


def _add_motion(ev: _Evidence, variance: float | None) -> None:
    if not is_finite_number(variance):
        return
    ev.use("accelerometer")
    if variance < 0.01:
        ev.stationary += 0.35
    elif variance < 0.05:
        ev.moving += 0.2
    elif variance < 0.2:
        ev.moving += 0.35
        ev.pin(MovementType.WALKING)
    else:
        ev.moving += 0.5
        ev.pin(MovementType.RUNNING)


def resolve_movement(
    signals: SignalSnapshot,
    previous: ContextSnapshot | None,
    *,
    now_ms: int,
) -> MovementResolution:
    """Resolve the user's movement type from one cycle of signals.

    Parameters
    ----------
    signals
        Fresh sensor evidence for this cycle.
    previous
        Last persisted snapshot; its GPS fix feeds the GPS-delta evidence.
    now_ms
        Evaluation time in epoch milliseconds.
    """
    ev = _Evidence()
    conflicts: list[str] = []

    gps = signals.gps
    kmh = speed_kmh(gps)
    speed_weight = freshness_weight(signal_age_ms(gps.timestamp if gps else None, now_ms))
    _add_gps_speed(ev, kmh, speed_weight)

    _add_gps_delta(ev, signals, previous, now_ms)

    act = signals.activity
    activity = act.type if act else None
    activity_weight = freshness_weight(signal_age_ms(act.timestamp if act else None, now_ms))
    _add_activity(ev, activity, activity_weight)

    _add_motion(ev, signals.motion.variance if signals.motion else None)

    if activity == ActivityType.STILL and kmh is not None and kmh >= STILL_VS_SPEED_KMH:
        conflicts.append(CONFLICT_ACTIVITY_STILL_VS_SPEED)

    movement_type = ev.movement_type
    if movement_type == MovementType.UNKNOWN:
        if ev.moving > ev.stationary + _DECISION_MARGIN:
            if kmh is not None and kmh >= _VEHICLE_FALLBACK_KMH:
                movement_type = MovementType.VEHICLE
            else:
                movement_type = MovementType.WALKING
        elif ev.stationary > ev.moving + _DECISION_MARGIN:
            movement_type = MovementType.STATIONARY

    confidence = clamp01(
        abs(ev.moving - ev.stationary) / (ev.moving + ev.stationary + _EPSILON)
    )

    logger.debug(
        "context.movement_resolved",
        movement=movement_type.value,
        moving_score=round(ev.moving, 3),
        stationary_score=round(ev.stationary, 3),
        confidence=round(confidence, 3),
        signals=ev.signals_used,
    )
    return MovementResolution(
        movement_type=movement_type,
        moving_score=ev.moving,
        stationary_score=ev.stationary,
        confidence=confidence,
        conflicts=conflicts,
        signals_used=ev.signals_used,
    )
