"""``promptarena-server``: run the API under uvicorn."""

import argparse
import os

from promptarena.config import settings

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptarena-server", description="PromptArena API server")
    parser.add_argument("--host", default=settings.host, help=f"bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"bind port (default: {settings.port})")
    parser.add_argument(
        "--local",
        action="store_true",
        help="SQLite database with auto-created tables and console logs",
    )
    parser.add_argument("--reload", action="store_true", help="restart on source changes")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=settings.log_level.lower())
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    # The environment carries the choice into reloader worker processes
    if args.local:
        os.environ["PROMPTARENA_LOCAL_MODE"] = "1"
        settings.local_mode = True
    os.environ["PROMPTARENA_LOG_LEVEL"] = args.log_level
    settings.log_level = args.log_level

    import uvicorn

    uvicorn.run(
        "promptarena.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
