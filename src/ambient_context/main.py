"""Application entrypoint — start the API server or evaluate one cycle offline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import structlog
import uvicorn
from pydantic import ValidationError

from ambient_context.config import get_settings
from ambient_context.engine.evaluator import evaluate_context
from ambient_context.engine.models import ContextSnapshot, ContextSource, SignalSnapshot
from ambient_context.logger import setup_logging

logger = structlog.get_logger(__name__)


def _run_evaluate(args: argparse.Namespace, default_source: ContextSource) -> int:
    try:
        signals = SignalSnapshot.model_validate_json(Path(args.signals).read_text(encoding="utf-8"))
        previous = None
        if args.previous:
            previous = ContextSnapshot.model_validate_json(
                Path(args.previous).read_text(encoding="utf-8")
            )
    except (OSError, ValidationError) as exc:
        logger.error("cli.invalid_input", error=str(exc))
        return 2

    result = evaluate_context(
        signals,
        previous,
        args.source or default_source,
        sleep_override=args.sleep_override,
        now_ms=args.now_ms,
    )
    print(result.model_dump_json(indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="ambient-context",
        description="Ambient context inference from phone sensor snapshots.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── evaluate ──────────────────────────────────────────────
    eval_parser = sub.add_parser("evaluate", help="Evaluate one signal snapshot (JSON file).")
    eval_parser.add_argument("signals", help="Path to a SignalSnapshot JSON file.")
    eval_parser.add_argument("--previous", default=None, help="Path to the previous ContextSnapshot JSON.")
    eval_parser.add_argument("--source", default=None, choices=[s.value for s in ContextSource])
    eval_parser.add_argument("--sleep-override", action="store_true")
    eval_parser.add_argument("--now-ms", type=int, default=None)

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)

    if args.command == "serve":
        uvicorn.run(
            "ambient_context.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "evaluate":
        sys.exit(_run_evaluate(args, settings.default_source))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
