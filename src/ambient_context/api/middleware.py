"""HTTP middleware: CORS, API key check, per-request log context, error handling."""

from __future__ import annotations

import secrets
import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ambient_context.config import get_settings

logger = structlog.get_logger(__name__)

_DEFAULT_SECRET = "change-me-to-a-random-secret"

REQUEST_ID_HEADER = "X-Request-ID"
SESSION_ID_HEADER = "X-Session-ID"

_PUBLIC_PATHS: frozenset[str] = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})


def _parse_origins(raw: str) -> list[str]:
    raw = raw.strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def add_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(get_settings().cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Require ``X-API-Key`` or ``Authorization: Bearer <key>`` off the public paths.

    Open while ``api_secret_key`` is unset or still the placeholder.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        expected = get_settings().api_secret_key
        if expected in (_DEFAULT_SECRET, "") or request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        presented = request.headers.get("X-API-Key") or _extract_bearer(
            request.headers.get("Authorization", "")
        )
        if not presented or not secrets.compare_digest(presented, expected):
            logger.warning("http.unauthorized", path=request.url.path)
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key."})

        return await call_next(request)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and session ids into the structlog context and log the request.

    Engine events emitted while handling the request (``context.*``) carry
    the same ``request_id`` and, when the caller sends one, ``session_id``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        bound = {"request_id": request_id}
        session_id = request.headers.get(SESSION_ID_HEADER)
        if session_id:
            bound["session_id"] = session_id

        structlog.contextvars.bind_contextvars(**bound)
        start = time.monotonic()
        try:
            response = await call_next(request)
            if request.url.path != "/health":
                logger.info(
                    "http.request",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - start) * 1000, 1),
                )
        finally:
            structlog.contextvars.unbind_contextvars(*bound)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into a JSON 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("http.unhandled_error", path=request.url.path, error=str(exc))
            return JSONResponse(status_code=500, content={"detail": "Internal server error."})


def setup_middleware(app: FastAPI) -> None:
    """Wire all middleware; the last one added runs outermost."""
    add_cors(app)
    app.add_middleware(APIKeyMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)


def _extract_bearer(auth_header: str) -> str:
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return ""
