"""Request / response models shared across API route modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ambient_context.engine.models import (
    ContextSnapshot,
    ContextSource,
    PollTier,
    SignalSnapshot,
    coerce_source,
)


class EvaluateRequest(BaseModel):
    """One evaluation cycle; the caller persists the returned snapshot."""
    signals: SignalSnapshot = Field(default_factory=SignalSnapshot)
    previous: ContextSnapshot | None = None
    source: ContextSource | None = None  # falls back to settings.default_source
    sleep_override: bool = False
    now_ms: int | None = None

    @field_validator("source", mode="before")
    @classmethod
    def _coerce_source(cls, value: Any) -> Any:
        return coerce_source(value)


class PollTiersResponse(BaseModel):
    base_intervals_ms: dict[PollTier, int]
    min_poll_ms: int
    max_poll_ms: int
