"""Pydantic models for the ambient context engine.

These models represent:
- Raw per-cycle sensor input (:class:`SignalSnapshot`)
- Intermediate resolver outputs (movement, environment)
- The persisted classification (:class:`ContextSnapshot`)
- The evaluation result handed back to the caller

Numeric sensor fields are sanitised on validation: NaN, infinities and
out-of-range values become ``None`` so that a malformed reading degrades
to "signal absent" instead of failing the polling cycle.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


# ── Enums ─────────────────────────────────────────────────────


class ContextState(str, Enum):
    """Semantic user state produced by the engine."""

    RESTING = "resting"
    WORKING = "working"
    COMMUTING = "commuting"
    DRIVING = "driving"
    WALKING = "walking"
    RUNNING = "running"
    GYM_WORKOUT = "gym_workout"
    SLEEPING = "sleeping"
    HOME_ACTIVE = "home_active"
    UNKNOWN = "unknown"


class MovementType(str, Enum):
    VEHICLE = "vehicle"
    WALKING = "walking"
    RUNNING = "running"
    STATIONARY = "stationary"
    UNKNOWN = "unknown"


class LocationType(str, Enum):
    HOME = "home"
    WORK = "work"
    GYM = "gym"
    FREQUENT = "frequent"
    UNKNOWN = "unknown"


class EnvironmentType(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    UNKNOWN = "unknown"


class ConfidenceLevel(str, Enum):
    """Bucketed view of the overall context confidence."""

    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class PollTier(str, Enum):
    """How aggressively the caller should re-sample sensors."""

    AGGRESSIVE = "aggressive"
    ACTIVE = "active"
    MONITORING = "monitoring"
    BACKGROUND = "background"
    SLEEP = "sleep"
    POWER_SAVE = "power_save"


class ActivityType(str, Enum):
    """Coarse activity classification reported by the OS."""

    STILL = "still"
    WALKING = "walking"
    RUNNING = "running"
    ON_BICYCLE = "on_bicycle"
    IN_VEHICLE = "in_vehicle"
    ON_FOOT = "on_foot"
    TILTING = "tilting"
    UNKNOWN = "unknown"


class NetworkType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    NONE = "none"
    UNKNOWN = "unknown"


class ContextSource(str, Enum):
    """Which acquisition path triggered the evaluation."""

    ACTIVITY_RECOGNITION = "activity_recognition"
    ACCELEROMETER = "accelerometer"
    MIXED = "mixed"
    FALLBACK = "fallback"
    BACKGROUND_LOCATION = "background_location"
    MANUAL = "manual"


class EnvironmentSource(str, Enum):
    """Dominant evidence source behind a baseline environment estimate."""

    GPS = "gps"
    SPEED = "speed"
    SAVED_PLACE = "saved_place"
    MAGNETOMETER = "magnetometer"
    BAROMETER = "barometer"
    NETWORK = "network"
    WIFI = "wifi"
    MIXED = "mixed"
    UNKNOWN = "unknown"


# ── Sanitisers ────────────────────────────────────────────────


def _finite(value: Any) -> Any:
    """Return ``None`` for NaN / ±Infinity, pass everything else through."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _in_range(value: float | None, lo: float, hi: float) -> float | None:
    if value is None or not (lo <= value <= hi):
        return None
    return value


def _non_negative(value: float | None) -> float | None:
    if value is None or value < 0:
        return None
    return value


def _lower_enum(value: Any, enum_cls: type[Enum], fallback: Enum) -> Any:
    """Case-insensitive enum coercion; unrecognised strings map to *fallback*."""
    if value is None or isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return fallback
    return value


def coerce_source(value: Any) -> Any:
    """Case-insensitive source lookup; unrecognised acquisition paths become ``fallback``."""
    return _lower_enum(value, ContextSource, ContextSource.FALLBACK)


class _SignalModel(BaseModel):
    """Base for signal groups: every float field is NaN/Inf-sanitised."""

    @field_validator("*", mode="before")
    @classmethod
    def _drop_non_finite(cls, value: Any) -> Any:
        return _finite(value)


# ── Signal snapshot (input) ──────────────────────────────────


class Coordinates(BaseModel):
    lat: float
    lng: float

    @field_validator("lat", "lng", mode="after")
    @classmethod
    def _must_be_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("coordinate must be a finite number")
        return value

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


def _valid_coords(value: Any) -> Any:
    """Turn a malformed fix (non-finite or non-numeric lat/lng) into ``None``."""
    if value is None:
        return None
    if isinstance(value, Coordinates):
        return value if value.is_finite else None
    try:
        return Coordinates.model_validate(value)
    except ValidationError:
        return None


class GpsSignal(_SignalModel):
    coords: Coordinates | None = None
    accuracy: float | None = Field(None, description="Horizontal accuracy in metres.")
    speed: float | None = Field(None, description="Ground speed in m/s.")
    timestamp: float | None = Field(None, description="Epoch ms of the reading.")

    @field_validator("coords", mode="before")
    @classmethod
    def _drop_bad_coords(cls, value: Any) -> Any:
        return _valid_coords(value)

    @field_validator("accuracy", "speed", mode="after")
    @classmethod
    def _drop_negative(cls, value: float | None) -> float | None:
        return _non_negative(_finite(value))


class ActivitySignal(_SignalModel):
    type: ActivityType | None = None
    confidence: float | None = None
    timestamp: float | None = Field(None, description="Epoch ms of the reading.")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        return _lower_enum(value, ActivityType, ActivityType.UNKNOWN)

    @field_validator("confidence", mode="after")
    @classmethod
    def _unit_range(cls, value: float | None) -> float | None:
        return _in_range(_finite(value), 0.0, 1.0)


class MotionSignal(_SignalModel):
    variance: float | None = Field(None, description="Accelerometer magnitude variance.")
    magnitude: float | None = None

    @field_validator("variance", mode="after")
    @classmethod
    def _drop_negative(cls, value: float | None) -> float | None:
        return _non_negative(_finite(value))


class EnvironmentSignal(_SignalModel):
    magnetometer_variance: float | None = None
    magnetometer_magnitude: float | None = None
    pressure_std: float | None = None
    pressure_delta: float | None = None
    network_type: NetworkType | None = None
    updated_at: float | None = None

    @field_validator("network_type", mode="before")
    @classmethod
    def _coerce_network(cls, value: Any) -> Any:
        return _lower_enum(value, NetworkType, NetworkType.UNKNOWN)


class WifiSignal(_SignalModel):
    connected: bool | None = None
    label: str | None = Field(None, description="Learned place label for the network.")
    confidence: float | None = None
    ssid: str | None = None
    bssid: str | None = None
    signal_strength: float | None = None

    @field_validator("confidence", mode="after")
    @classmethod
    def _unit_range(cls, value: float | None) -> float | None:
        return _in_range(_finite(value), 0.0, 1.0)


class LocationSignal(_SignalModel):
    is_home: bool | None = None
    is_work: bool | None = None
    is_gym: bool | None = None
    nearest_label: str | None = None
    nearest_distance: float | None = Field(None, description="Metres to nearest saved place.")


class DeviceSignal(_SignalModel):
    is_charging: bool | None = None
    is_power_save_mode: bool | None = None
    battery_level: float | None = Field(None, description="Battery fraction 0-1.")

    @field_validator("battery_level", mode="after")
    @classmethod
    def _unit_range(cls, value: float | None) -> float | None:
        return _in_range(_finite(value), 0.0, 1.0)


class TemporalSignal(_SignalModel):
    hour: int | None = None
    day_of_week: int | None = None
    is_weekend: bool | None = None

    @field_validator("hour", mode="after")
    @classmethod
    def _valid_hour(cls, value: int | None) -> int | None:
        return value if value is not None and 0 <= value <= 23 else None

    @field_validator("day_of_week", mode="after")
    @classmethod
    def _valid_day(cls, value: int | None) -> int | None:
        return value if value is not None and 0 <= value <= 6 else None


class SignalSnapshot(BaseModel):
    """All sensor evidence gathered for one polling cycle.

    Every group is optional; the engine degrades gracefully as groups
    go missing.
    """

    collected_at: float | None = None
    gps: GpsSignal | None = None
    activity: ActivitySignal | None = None
    motion: MotionSignal | None = None
    environment: EnvironmentSignal | None = None
    wifi: WifiSignal | None = None
    location: LocationSignal | None = None
    device: DeviceSignal | None = None
    temporal: TemporalSignal | None = None


# ── Resolver outputs ─────────────────────────────────────────


class MovementResolution(BaseModel):
    movement_type: MovementType = MovementType.UNKNOWN
    moving_score: float = 0.1
    stationary_score: float = 0.1
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    conflicts: list[str] = Field(default_factory=list)
    signals_used: list[str] = Field(default_factory=list)


class EnvironmentBaseline(BaseModel):
    """Starting indoor/outdoor estimate from raw environmental signals."""

    environment: EnvironmentType = EnvironmentType.UNKNOWN
    indoor_confidence: float = Field(0.5, ge=0.0, le=1.0)
    outdoor_confidence: float = Field(0.5, ge=0.0, le=1.0)
    source: EnvironmentSource = EnvironmentSource.UNKNOWN


class EnvironmentResolution(BaseModel):
    environment: EnvironmentType = EnvironmentType.UNKNOWN
    indoor_confidence: float = Field(0.5, ge=0.0, le=1.0)
    outdoor_confidence: float = Field(0.5, ge=0.0, le=1.0)
    conflicts: list[str] = Field(default_factory=list)
    signals_used: list[str] = Field(default_factory=list)


# ── Context snapshot (output / persisted) ────────────────────


def normalize_state(state: Any) -> Any:
    """Map the legacy ``idle`` state name onto ``resting``."""
    if state == "idle":
        return ContextState.RESTING
    return state


class ContextSnapshot(BaseModel):
    """Result of one evaluation cycle, persisted by the caller.

    Immutable: the next cycle always builds a new snapshot.
    """

    model_config = ConfigDict(frozen=True)

    state: ContextState = ContextState.UNKNOWN
    state_started_at: int | None = Field(
        None,
        description="Epoch ms when the current state value was first reached.",
    )
    source: ContextSource = ContextSource.MIXED
    activity: str | None = None

    # ── Components
    movement_type: MovementType = MovementType.UNKNOWN
    location_type: LocationType = LocationType.UNKNOWN
    environment: EnvironmentType = EnvironmentType.UNKNOWN
    indoor_confidence: float = Field(0.5, ge=0.0, le=1.0)
    outdoor_confidence: float = Field(0.5, ge=0.0, le=1.0)

    # ── Confidence & diagnostics
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    confidence_level: ConfidenceLevel = ConfidenceLevel.VERY_LOW
    conflicts: list[str] = Field(default_factory=list)
    signals_used: list[str] = Field(default_factory=list)
    poll_tier: PollTier | None = None

    # ── Location summary
    location_label: str | None = None
    location_context: str | None = None
    location_accuracy: float | None = None
    location_speed: float | None = None
    location_coords: Coordinates | None = None

    charger_connected: bool | None = None
    updated_at: int = Field(..., description="Epoch ms of the evaluation.")

    @field_validator("state", mode="before")
    @classmethod
    def _normalize_legacy_state(cls, value: Any) -> Any:
        return normalize_state(value)

    @field_validator("source", mode="before")
    @classmethod
    def _coerce_source(cls, value: Any) -> Any:
        return coerce_source(value)

    @field_validator("location_coords", mode="before")
    @classmethod
    def _drop_bad_coords(cls, value: Any) -> Any:
        return _valid_coords(value)


class EvaluationResult(BaseModel):
    """What one call to the evaluator hands back to the caller."""

    snapshot: ContextSnapshot
    next_poll_ms: int = Field(..., ge=10_000, le=3_600_000)
