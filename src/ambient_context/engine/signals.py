"""Signal hygiene — freshness weighting, distance and speed helpers."""

from __future__ import annotations

import math

from ambient_context.engine.models import Coordinates, GpsSignal

# ── Constants ─────────────────────────────────────────────────

EARTH_RADIUS_M = 6_371_000

# (max age ms, weight) — first bucket the age fits into wins
_FRESHNESS_BUCKETS: tuple[tuple[int, float], ...] = (
    (60_000, 1.0),
    (5 * 60_000, 0.8),
    (15 * 60_000, 0.5),
    (60 * 60_000, 0.2),
)

_NIGHT_START_HOUR = 22
_NIGHT_END_HOUR = 6


def is_finite_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def freshness_weight(age_ms: float | None) -> float:
    """Weight a timestamped signal by its age.

    A signal without a timestamp counts as fresh.  Anything older than
    an hour contributes nothing.
    """
    if age_ms is None:
        return 1.0
    for max_age, weight in _FRESHNESS_BUCKETS:
        if age_ms <= max_age:
            return weight
    return 0.0


def signal_age_ms(timestamp: float | None, now_ms: int) -> float | None:
    if not timestamp:
        return None
    return now_ms - timestamp


def distance_meters(a: Coordinates | None, b: Coordinates | None) -> float | None:
    """Great-circle (haversine) distance between two fixes, in metres.

    ``None`` when either fix is missing or not a pair of finite numbers.
    """
    if a is None or b is None:
        return None
    if not all(is_finite_number(v) for v in (a.lat, a.lng, b.lat, b.lng)):
        return None
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def speed_kmh(gps: GpsSignal | None) -> float | None:
    """GPS ground speed converted from m/s to km/h, or ``None``."""
    if gps is None or not is_finite_number(gps.speed):
        return None
    return gps.speed * 3.6


def is_night(hour: int | None) -> bool:
    if hour is None:
        return False
    return hour >= _NIGHT_START_HOUR or hour <= _NIGHT_END_HOUR
