"""Location-type classification and human-readable location summaries."""

from __future__ import annotations

from ambient_context.engine.models import (
    EnvironmentResolution,
    EnvironmentType,
    LocationType,
    MovementResolution,
    MovementType,
    SignalSnapshot,
)
from ambient_context.engine.signals import is_finite_number

SAVED_PLACE_TYPES = frozenset({LocationType.HOME, LocationType.WORK, LocationType.GYM})


def resolve_location_type(signals: SignalSnapshot) -> LocationType:
    """Priority lookup: home > work > gym > frequent place > unknown."""
    loc = signals.location
    if loc is None:
        return LocationType.UNKNOWN
    if loc.is_home:
        return LocationType.HOME
    if loc.is_work:
        return LocationType.WORK
    if loc.is_gym:
        return LocationType.GYM
    if loc.nearest_label:
        return LocationType.FREQUENT
    return LocationType.UNKNOWN


def derive_location_label(signals: SignalSnapshot) -> str | None:
    loc = signals.location
    if loc is not None:
        if loc.is_home:
            return "home"
        if loc.is_work:
            return "work"
        if loc.is_gym:
            return "gym"
        if loc.nearest_label:
            return loc.nearest_label
    if signals.gps is not None and signals.gps.coords is not None:
        return "outside"
    return None


def build_location_context(
    signals: SignalSnapshot,
    movement: MovementResolution,
    environment: EnvironmentResolution,
    confidence: float,
) -> str | None:
    """Summarise the resolved components as one sentence-per-part string."""
    parts: list[str] = []

    label = derive_location_label(signals)
    if label:
        parts.append(f"Location: {label}")

    if movement.movement_type != MovementType.UNKNOWN:
        parts.append(f"Movement: {movement.movement_type.value}")

    if environment.environment != EnvironmentType.UNKNOWN:
        parts.append(
            f"Environment: {environment.environment.value} "
            f"(indoor {round(environment.indoor_confidence * 100)}%, "
            f"outdoor {round(environment.outdoor_confidence * 100)}%)"
        )

    if confidence:
        parts.append(f"Context confidence: {round(confidence * 100)}%")

    loc = signals.location
    if loc is not None and loc.nearest_label and is_finite_number(loc.nearest_distance):
        parts.append(f"Nearest place: {loc.nearest_label} ({round(loc.nearest_distance)}m)")

    return ". ".join(parts) if parts else None
