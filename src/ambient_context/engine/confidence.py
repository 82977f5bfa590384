"""Confidence aggregation across resolvers."""

from __future__ import annotations

from ambient_context.engine.models import (
    ConfidenceLevel,
    EnvironmentResolution,
    MovementResolution,
)
from ambient_context.engine.signals import clamp01

_BASE = 0.4
_MOVEMENT_WEIGHT = 0.3
_ENVIRONMENT_WEIGHT = 0.3
_CONFLICT_PENALTY = 0.1

# (max distinct signal sources, multiplier) — sparse evidence is penalised
_COVERAGE_PENALTIES: tuple[tuple[int, float], ...] = ((1, 0.7), (2, 0.85))

_LEVEL_THRESHOLDS: tuple[tuple[float, ConfidenceLevel], ...] = (
    (0.9, ConfidenceLevel.VERY_HIGH),
    (0.75, ConfidenceLevel.HIGH),
    (0.55, ConfidenceLevel.MEDIUM),
    (0.35, ConfidenceLevel.LOW),
)


def signal_coverage(movement: MovementResolution, environment: EnvironmentResolution) -> list[str]:
    """Distinct signal-source tags from both resolvers, in first-seen order."""
    return list(dict.fromkeys([*movement.signals_used, *environment.signals_used]))


def aggregate_confidence(
    movement: MovementResolution,
    environment: EnvironmentResolution,
) -> float:
    """Combine sub-confidences, conflicts and coverage into one score in [0, 1]."""
    env_diff = abs(environment.indoor_confidence - environment.outdoor_confidence)
    confidence = clamp01(
        _BASE + _MOVEMENT_WEIGHT * movement.confidence + _ENVIRONMENT_WEIGHT * env_diff
    )

    n_conflicts = len(movement.conflicts) + len(environment.conflicts)
    if n_conflicts:
        confidence = clamp01(confidence - _CONFLICT_PENALTY * n_conflicts)

    coverage = len(signal_coverage(movement, environment))
    for max_sources, factor in _COVERAGE_PENALTIES:
        if coverage <= max_sources:
            confidence = clamp01(confidence * factor)
            break

    return confidence


def resolve_confidence_level(confidence: float) -> ConfidenceLevel:
    for threshold, level in _LEVEL_THRESHOLDS:
        if confidence >= threshold:
            return level
    return ConfidenceLevel.VERY_LOW
