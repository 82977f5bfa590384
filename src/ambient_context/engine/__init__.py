"""Ambient context engine — fuse phone sensors into one stable user context.

Each polling cycle the engine takes a :class:`SignalSnapshot` (GPS,
activity recognition, accelerometer, magnetometer/barometer, Wi-Fi,
battery, time of day) plus the previously persisted
:class:`ContextSnapshot` and produces a new snapshot and the delay until
the next poll.

Architecture
------------
1. **Movement resolver** (`movement.py`)
   - Freshness-weighted moving vs stationary evidence
2. **Environment resolver** (`environment.py`)
   - Baseline indoor/outdoor scorer plus ordered adjustments
3. **Location type** (`location.py`)
   - home > work > gym > frequent > unknown
4. **State resolver + transition guard** (`state.py`)
   - Candidate state, then hysteresis against the previous state
5. **Confidence** (`confidence.py`) and **scheduler** (`scheduler.py`)
6. **Evaluator** (`evaluator.py`) ties the above together

The engine is pure: it never reads or writes storage and never starts
timers.  Callers must serialise evaluations per session and persist each
returned snapshot before the next call.
"""

from ambient_context.engine.evaluator import evaluate_context
from ambient_context.engine.models import (
    ActivityType,
    ConfidenceLevel,
    ContextSnapshot,
    ContextSource,
    ContextState,
    EnvironmentType,
    EvaluationResult,
    LocationType,
    MovementType,
    NetworkType,
    PollTier,
    SignalSnapshot,
)

__all__ = [
    "ActivityType",
    "ConfidenceLevel",
    "ContextSnapshot",
    "ContextSource",
    "ContextState",
    "EnvironmentType",
    "EvaluationResult",
    "LocationType",
    "MovementType",
    "NetworkType",
    "PollTier",
    "SignalSnapshot",
    "evaluate_context",
]
