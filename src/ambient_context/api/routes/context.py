"""Context evaluation routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from ambient_context.api.schemas import EvaluateRequest, PollTiersResponse
from ambient_context.config import get_settings
from ambient_context.engine.evaluator import evaluate_context
from ambient_context.engine.models import EvaluationResult
from ambient_context.engine.scheduler import BASE_INTERVALS_MS, MAX_POLL_MS, MIN_POLL_MS

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/context", tags=["context"])


@router.post("/evaluate", response_model=EvaluationResult)
async def evaluate(req: EvaluateRequest):
    """Run one evaluation cycle.

    Stateless: pass the snapshot returned by the previous call as
    ``previous``.  Requests for the same session must be serialised by
    the caller.
    """
    result = evaluate_context(
        req.signals,
        req.previous,
        req.source or get_settings().default_source,
        sleep_override=req.sleep_override,
        now_ms=req.now_ms,
    )
    logger.info(
        "api.evaluate",
        state=result.snapshot.state.value,
        next_poll_ms=result.next_poll_ms,
    )
    return result


@router.get("/poll-tiers", response_model=PollTiersResponse)
async def poll_tiers():
    """Base polling interval per tier and the global clamp bounds."""
    return PollTiersResponse(
        base_intervals_ms=BASE_INTERVALS_MS,
        min_poll_ms=MIN_POLL_MS,
        max_poll_ms=MAX_POLL_MS,
    )
