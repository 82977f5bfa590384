"""State resolver and transition guard.

:func:`resolve_state` maps the resolved components to a *candidate*
semantic state.  :func:`apply_transition_rules` then compares that
candidate with the previous stable state and holds the previous state
when the evidence for leaving it is too weak or too recent.
"""

from __future__ import annotations

import structlog

from ambient_context.engine.location import SAVED_PLACE_TYPES
from ambient_context.engine.models import (
    ContextSnapshot,
    ContextState,
    EnvironmentResolution,
    EnvironmentType,
    LocationType,
    MovementResolution,
    MovementType,
    normalize_state,
)

logger = structlog.get_logger(__name__)

# Prior states from which a vehicle trip counts as a commute
_SETTLED_STATES = frozenset({
    ContextState.RESTING,
    ContextState.HOME_ACTIVE,
    ContextState.WORKING,
    ContextState.GYM_WORKOUT,
    ContextState.SLEEPING,
    ContextState.WALKING,
})

_SLEEP_EXIT_CONFIDENCE = 0.75
_SLEEP_EXIT_WINDOW_MS = 2 * 60_000
_TRIP_EXIT_CONFIDENCE = 0.65
_WORK_TO_REST_CONFIDENCE = 0.7
_REST_TO_WORK_CONFIDENCE = 0.8
_GYM_EXIT_CONFIDENCE = 0.7
_SLEEP_ENTRY_CONFIDENCE = 0.85


# ── Candidate state ──────────────────────────────────────────


def resolve_state(
    movement: MovementResolution,
    location_type: LocationType,
    environment: EnvironmentResolution,
    previous: ContextSnapshot | None = None,
    sleep_override: bool = False,
) -> ContextState:
    """Pick a candidate state from movement, place and environment."""
    if sleep_override:
        return ContextState.SLEEPING

    prev_state = normalize_state(previous.state) if previous is not None else None
    mt = movement.movement_type

    if mt == MovementType.VEHICLE:
        if location_type in SAVED_PLACE_TYPES or prev_state in _SETTLED_STATES:
            return ContextState.COMMUTING
        return ContextState.DRIVING

    if mt == MovementType.RUNNING:
        if location_type == LocationType.GYM:
            return ContextState.GYM_WORKOUT
        return ContextState.RUNNING

    if mt == MovementType.WALKING:
        if location_type == LocationType.GYM:
            return ContextState.GYM_WORKOUT
        if location_type == LocationType.HOME and environment.environment == EnvironmentType.INDOOR:
            return ContextState.HOME_ACTIVE
        return ContextState.WALKING

    if mt == MovementType.STATIONARY:
        if location_type == LocationType.GYM:
            return ContextState.GYM_WORKOUT
        if location_type == LocationType.WORK:
            return ContextState.WORKING
        return ContextState.RESTING

    return ContextState.UNKNOWN


# ── Hysteresis ───────────────────────────────────────────────


def _guarded_state(
    prev_state: ContextState,
    next_state: ContextState,
    location_type: LocationType,
    movement_type: MovementType,
    confidence: float,
    elapsed_ms: int,
) -> tuple[ContextState, str | None]:
    """Return the state to keep plus the name of the last rule that held it."""
    rule: str | None = None

    if prev_state == ContextState.SLEEPING and next_state != ContextState.SLEEPING:
        if confidence < _SLEEP_EXIT_CONFIDENCE and elapsed_ms < _SLEEP_EXIT_WINDOW_MS:
            next_state, rule = prev_state, "sleep_exit"

    if prev_state in (ContextState.DRIVING, ContextState.COMMUTING) and next_state != prev_state:
        if movement_type == MovementType.VEHICLE or confidence < _TRIP_EXIT_CONFIDENCE:
            next_state, rule = prev_state, "trip_exit"

    if prev_state == ContextState.WORKING and next_state == ContextState.RESTING:
        if location_type == LocationType.WORK and confidence < _WORK_TO_REST_CONFIDENCE:
            next_state, rule = prev_state, "work_to_rest"

    if (
        prev_state in (ContextState.RESTING, ContextState.HOME_ACTIVE)
        and next_state == ContextState.WORKING
    ):
        if location_type != LocationType.WORK and confidence < _REST_TO_WORK_CONFIDENCE:
            next_state, rule = prev_state, "rest_to_work"

    if prev_state == ContextState.GYM_WORKOUT and next_state != ContextState.GYM_WORKOUT:
        if location_type == LocationType.GYM and confidence < _GYM_EXIT_CONFIDENCE:
            next_state, rule = prev_state, "gym_exit"

    if (
        next_state == ContextState.SLEEPING
        and movement_type != MovementType.STATIONARY
        and confidence < _SLEEP_ENTRY_CONFIDENCE
    ):
        next_state, rule = prev_state, "sleep_entry"

    return next_state, rule


def apply_transition_rules(
    previous: ContextSnapshot | None,
    candidate: ContextSnapshot,
    movement: MovementResolution,
    confidence: float,
) -> ContextSnapshot:
    """Apply hysteresis between *previous* and *candidate*.

    Returns a new snapshot whose ``state`` may be forced back to the
    previous state, and whose ``state_started_at`` is carried forward
    when the state did not change and reset to ``candidate.updated_at``
    otherwise.  With no previous snapshot the candidate is accepted.
    """
    now = candidate.updated_at
    if previous is None:
        return candidate.model_copy(update={"state_started_at": now})

    prev_started = previous.state_started_at or previous.updated_at
    prev_state = normalize_state(previous.state)
    candidate_state = normalize_state(candidate.state)

    next_state, rule = _guarded_state(
        prev_state,
        candidate_state,
        candidate.location_type,
        movement.movement_type,
        confidence,
        now - previous.updated_at,
    )
    if rule is not None and candidate_state != next_state:
        logger.info(
            "context.transition_suppressed",
            rule=rule,
            previous=prev_state.value,
            candidate=candidate_state.value,
            confidence=round(confidence, 3),
        )

    state_started_at = prev_started if next_state == prev_state else now
    return candidate.model_copy(
        update={"state": next_state, "state_started_at": state_started_at}
    )
