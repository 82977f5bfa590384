"""Environment resolver — indoor / outdoor estimation.

Two stages:

1. :func:`score_environment_baseline` turns raw environmental signals
   (GPS accuracy, speed, saved-place flags, magnetometer and barometer
   stability, network type, Wi-Fi place label) into a normalised
   indoor/outdoor pair.
2. :func:`resolve_environment` applies an ordered sequence of
   adjustments driven by movement, time of day and place context, and
   records conflict tags where signals contradict each other.

Final labelling uses a ±0.25 dead-zone on ``indoor - outdoor`` so that
near-ties stay ``unknown``.
"""

from __future__ import annotations

import structlog

from ambient_context.engine.location import SAVED_PLACE_TYPES
from ambient_context.engine.models import (
    EnvironmentBaseline,
    EnvironmentResolution,
    EnvironmentSource,
    EnvironmentType,
    LocationType,
    MovementResolution,
    MovementType,
    NetworkType,
    SignalSnapshot,
)
from ambient_context.engine.signals import clamp01, is_finite_number, is_night, speed_kmh

logger = structlog.get_logger(__name__)

_LABEL_DEAD_ZONE = 0.25
_KNOWN_PLACE_LABELS = frozenset({"home", "work", "gym"})

CONFLICT_MOVING_VS_INDOOR = "moving_vs_indoor"
CONFLICT_NIGHT_ACTIVE = "night_active"
CONFLICT_WIFI_VS_CELLULAR = "wifi_vs_cellular"
CONFLICT_WIFI_PLACE_VS_SPEED = "wifi_place_vs_speed"
CONFLICT_CHARGING_VS_MOVING = "charging_vs_moving"


def _label(indoor: float, outdoor: float) -> EnvironmentType:
    diff = indoor - outdoor
    if diff >= _LABEL_DEAD_ZONE:
        return EnvironmentType.INDOOR
    if diff <= -_LABEL_DEAD_ZONE:
        return EnvironmentType.OUTDOOR
    return EnvironmentType.UNKNOWN


# ── Baseline scorer ──────────────────────────────────────────


def score_environment_baseline(
    *,
    accuracy: float | None = None,
    speed: float | None = None,
    is_saved_place: bool = False,
    location_label: str | None = None,
    magnetometer_variance: float | None = None,
    pressure_std: float | None = None,
    network_type: NetworkType | None = None,
    wifi_connected: bool = False,
    wifi_label: str | None = None,
    wifi_confidence: float | None = None,
) -> EnvironmentBaseline:
    """Score indoor vs outdoor likelihood from raw environmental signals.

    ``speed`` is in m/s.  Returns 0.5 / 0.5 with source ``unknown`` when no
    signal is present; otherwise the two scores are normalised to sum to 1.
    """
    indoor = 0.5
    outdoor = 0.5
    sources: list[EnvironmentSource] = []

    def _seen(source: EnvironmentSource) -> None:
        if source not in sources:
            sources.append(source)

    has_signal = False

    if is_saved_place:
        indoor += 0.25
        has_signal = True
        _seen(EnvironmentSource.SAVED_PLACE)

    if is_finite_number(accuracy):
        has_signal = True
        _seen(EnvironmentSource.GPS)
        # Poor accuracy usually means the sky is obstructed
        if accuracy >= 50:
            indoor += 0.25
        elif accuracy >= 35:
            indoor += 0.1
        elif accuracy <= 15:
            outdoor += 0.25
        elif accuracy <= 30:
            outdoor += 0.1
        else:
            indoor += 0.05
            outdoor += 0.05

    if is_finite_number(speed):
        has_signal = True
        _seen(EnvironmentSource.SPEED)
        if speed >= 6:
            outdoor += 0.3
        elif speed >= 3:
            outdoor += 0.2
        elif speed <= 0.5:
            indoor += 0.1

    if is_finite_number(magnetometer_variance):
        has_signal = True
        _seen(EnvironmentSource.MAGNETOMETER)
        # Steel and wiring disturb the field indoors
        if magnetometer_variance >= 12:
            indoor += 0.2
        elif magnetometer_variance <= 3:
            outdoor += 0.1

    if is_finite_number(pressure_std):
        has_signal = True
        _seen(EnvironmentSource.BAROMETER)
        if pressure_std <= 0.05:
            indoor += 0.1
        elif pressure_std >= 0.2:
            outdoor += 0.05

    if network_type is not None:
        has_signal = True
        _seen(EnvironmentSource.NETWORK)
        if network_type in (NetworkType.WIFI, NetworkType.ETHERNET):
            indoor += 0.1
        elif network_type == NetworkType.CELLULAR:
            outdoor += 0.1

    if wifi_connected:
        has_signal = True
        _seen(EnvironmentSource.WIFI)
        indoor += 0.15
        boost = wifi_confidence if is_finite_number(wifi_confidence) else 0.0
        if wifi_label in _KNOWN_PLACE_LABELS:
            indoor += 0.2 + min(0.15, boost * 0.15)
        elif wifi_label == "frequent":
            indoor += 0.1

    if location_label == "outside":
        outdoor += 0.1
        has_signal = True

    if not has_signal:
        return EnvironmentBaseline()

    indoor, outdoor = clamp01(indoor), clamp01(outdoor)
    total = indoor + outdoor
    if total <= 0:
        indoor_conf, outdoor_conf = 0.5, 0.5
    else:
        indoor_conf, outdoor_conf = indoor / total, outdoor / total

    if len(sources) == 1:
        source = sources[0]
    elif sources:
        source = EnvironmentSource.MIXED
    else:
        source = EnvironmentSource.UNKNOWN

    return EnvironmentBaseline(
        environment=_label(indoor_conf, outdoor_conf),
        indoor_confidence=indoor_conf,
        outdoor_confidence=outdoor_conf,
        source=source,
    )


# ── Resolver ─────────────────────────────────────────────────


class _Scores:
    """Indoor/outdoor pair that stays clamped after every nudge."""

    def __init__(self, indoor: float, outdoor: float) -> None:
        self.indoor = indoor
        self.outdoor = outdoor

    def nudge(self, indoor: float, outdoor: float) -> None:
        self.indoor = clamp01(self.indoor + indoor)
        self.outdoor = clamp01(self.outdoor + outdoor)


def resolve_environment(
    signals: SignalSnapshot,
    movement: MovementResolution,
    location_type: LocationType,
) -> EnvironmentResolution:
    """Resolve indoor/outdoor for this cycle.

    Adjustments are applied in a fixed order on top of the baseline:

    1. vehicle movement favours outdoor
    2. moving while confidently indoor is flagged
    3. night hours favour indoor when still, flag activity otherwise
    4. saved places favour indoor
    5. Wi-Fi connected without a label on a cellular network is flagged
    6. a known-place Wi-Fi label at driving speed favours outdoor
    7. charging at driving speed is flagged
    """
    env = signals.environment
    wifi = signals.wifi
    device = signals.device
    loc = signals.location

    baseline = score_environment_baseline(
        accuracy=signals.gps.accuracy if signals.gps else None,
        speed=signals.gps.speed if signals.gps else None,
        is_saved_place=location_type in SAVED_PLACE_TYPES,
        location_label=loc.nearest_label if loc else None,
        magnetometer_variance=env.magnetometer_variance if env else None,
        pressure_std=env.pressure_std if env else None,
        network_type=env.network_type if env else None,
        wifi_connected=bool(wifi and wifi.connected),
        wifi_label=wifi.label if wifi else None,
        wifi_confidence=wifi.confidence if wifi else None,
    )

    scores = _Scores(baseline.indoor_confidence, baseline.outdoor_confidence)
    conflicts: list[str] = []
    signals_used: list[str] = []

    def _use(tag: str) -> None:
        if tag not in signals_used:
            signals_used.append(tag)

    if baseline.source != EnvironmentSource.UNKNOWN:
        _use(baseline.source.value)

    mt = movement.movement_type
    kmh = speed_kmh(signals.gps)
    charging = bool(device and device.is_charging)

    # 1
    if mt == MovementType.VEHICLE:
        scores.nudge(-0.25, +0.25)
        _use("movement_vehicle")

    # 2
    if mt != MovementType.STATIONARY and scores.indoor >= 0.7:
        conflicts.append(CONFLICT_MOVING_VS_INDOOR)

    # 3
    if signals.temporal is not None and is_night(signals.temporal.hour):
        if mt == MovementType.STATIONARY:
            scores.nudge(+0.07, -0.03)
            _use("nighttime")
        elif mt != MovementType.UNKNOWN:
            conflicts.append(CONFLICT_NIGHT_ACTIVE)
            scores.nudge(-0.05, +0.05)

    # 4
    if location_type in SAVED_PLACE_TYPES:
        scores.nudge(+0.18, -0.18)
        _use("saved_location")

    # 5
    if (
        wifi is not None
        and wifi.connected
        and not wifi.label
        and env is not None
        and env.network_type == NetworkType.CELLULAR
    ):
        conflicts.append(CONFLICT_WIFI_VS_CELLULAR)

    if charging and mt == MovementType.VEHICLE:
        _use("charging_vehicle")

    # 6
    if wifi is not None and wifi.label in _KNOWN_PLACE_LABELS:
        _use("wifi_label")
        if kmh is not None and kmh >= 10:
            # Connected-but-moving usually means stale Wi-Fi state
            conflicts.append(CONFLICT_WIFI_PLACE_VS_SPEED)
            scores.nudge(-0.1, +0.15)

    # 7
    if charging and kmh is not None and kmh >= 12:
        conflicts.append(CONFLICT_CHARGING_VS_MOVING)

    environment = _label(scores.indoor, scores.outdoor)

    logger.debug(
        "context.environment_resolved",
        environment=environment.value,
        indoor=round(scores.indoor, 3),
        outdoor=round(scores.outdoor, 3),
        baseline_source=baseline.source.value,
        conflicts=conflicts,
    )
    return EnvironmentResolution(
        environment=environment,
        indoor_confidence=scores.indoor,
        outdoor_confidence=scores.outdoor,
        conflicts=conflicts,
        signals_used=signals_used,
    )
