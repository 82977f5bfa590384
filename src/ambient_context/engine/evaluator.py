"""Context evaluator — one request/response cycle of the engine.

This is the primary entry point.  It runs the resolvers in order,

1. movement
2. location type
3. environment
4. confidence aggregation
5. candidate state
6. transition guard (hysteresis)
7. poll-tier scheduling

and returns the new :class:`ContextSnapshot` together with the advised
delay before the next poll.  Nothing is persisted or scheduled here: the
caller stores the snapshot and passes it back as ``previous`` next time.
"""

from __future__ import annotations

import time

import structlog

from ambient_context.engine.confidence import (
    aggregate_confidence,
    resolve_confidence_level,
    signal_coverage,
)
from ambient_context.engine.environment import resolve_environment
from ambient_context.engine.location import (
    build_location_context,
    derive_location_label,
    resolve_location_type,
)
from ambient_context.engine.models import (
    ContextSnapshot,
    ContextSource,
    EvaluationResult,
    SignalSnapshot,
)
from ambient_context.engine.movement import resolve_movement
from ambient_context.engine.scheduler import compute_next_poll_ms, determine_poll_tier
from ambient_context.engine.state import apply_transition_rules, resolve_state

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def evaluate_context(
    signals: SignalSnapshot,
    previous: ContextSnapshot | None,
    source: ContextSource | str,
    sleep_override: bool = False,
    *,
    now_ms: int | None = None,
) -> EvaluationResult:
    """Evaluate one polling cycle.

    Parameters
    ----------
    signals
        Sensor evidence for this cycle.  Every group may be absent.
    previous
        The last snapshot returned by this function for the same
        session, or ``None`` on cold start.
    source
        Acquisition path that triggered the evaluation.  Matched
        case-insensitively; unrecognised values are recorded as
        ``fallback``.
    sleep_override
        Set by the sleep heuristic when it has independently detected
        sleep onset; forces the ``sleeping`` candidate.
    now_ms
        Evaluation time in epoch ms.  Defaults to the wall clock.

    Returns
    -------
    EvaluationResult
        The new snapshot and ``next_poll_ms``.
    """
    now = _now_ms() if now_ms is None else now_ms

    movement = resolve_movement(signals, previous, now_ms=now)
    location_type = resolve_location_type(signals)
    environment = resolve_environment(signals, movement, location_type)

    confidence = aggregate_confidence(movement, environment)
    conflicts = [*movement.conflicts, *environment.conflicts]

    state = resolve_state(movement, location_type, environment, previous, sleep_override)

    gps = signals.gps
    candidate = ContextSnapshot(
        state=state,
        source=source,
        activity=signals.activity.type.value if signals.activity and signals.activity.type else None,
        movement_type=movement.movement_type,
        location_type=location_type,
        environment=environment.environment,
        indoor_confidence=environment.indoor_confidence,
        outdoor_confidence=environment.outdoor_confidence,
        confidence=confidence,
        confidence_level=resolve_confidence_level(confidence),
        conflicts=conflicts,
        signals_used=signal_coverage(movement, environment),
        location_label=derive_location_label(signals),
        location_context=build_location_context(signals, movement, environment, confidence),
        location_accuracy=gps.accuracy if gps else None,
        location_speed=gps.speed if gps else None,
        location_coords=gps.coords if gps else None,
        charger_connected=signals.device.is_charging if signals.device else None,
        updated_at=now,
    )

    snapshot = apply_transition_rules(previous, candidate, movement, confidence)

    state_duration_ms = max(0, snapshot.updated_at - (snapshot.state_started_at or snapshot.updated_at))
    tier = determine_poll_tier(snapshot.state, movement, environment, confidence, signals.device)
    next_poll_ms = compute_next_poll_ms(tier, confidence, signals.device, state_duration_ms)
    snapshot = snapshot.model_copy(update={"poll_tier": tier})

    logger.info(
        "context.evaluation_complete",
        state=snapshot.state.value,
        candidate=state.value,
        movement=movement.movement_type.value,
        environment=environment.environment.value,
        location=location_type.value,
        confidence=round(confidence, 3),
        conflicts=conflicts,
        poll_tier=tier.value,
        next_poll_ms=next_poll_ms,
    )
    return EvaluationResult(snapshot=snapshot, next_poll_ms=next_poll_ms)
