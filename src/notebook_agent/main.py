"""`notebook-agent-server`: serve the notebook agent over HTTP."""

from __future__ import annotations

import argparse
from typing import Sequence

import uvicorn

from .logging import get_logger
from .settings import get_settings

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the notebook agent HTTP server.")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only).")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logger.info(
        "server_starting",
        extra={
            "extra": {
                "host": args.host,
                "port": args.port,
                "mock_llm": settings.mock_llm or not settings.openai_api_key,
                "trace_dir": settings.trace_dir,
            }
        },
    )
    uvicorn.run("notebook_agent.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
