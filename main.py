"""Command-line entry point for launching the ChatFTC API server."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from chatftc.config import config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
APP_FACTORY = "chatftc.api:create_app"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Launch the ChatFTC API server.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Bind address for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the API server (default: 8000).",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=config.is_development(),
        help="Restart the server when source files change (on in development).",
    )
    return parser.parse_args(argv)


def build_uvicorn_command(
    *,
    host: str,
    port: int,
    reload: bool,
) -> list[str]:
    """Construct the uvicorn CLI invocation."""  # noqa: DOC201
    command = [
        sys.executable,
        "-m",
        "uvicorn",
        APP_FACTORY,
        "--factory",
        "--host",
        host,
        "--port",
        str(port),
        "--log-level",
        config.LOG_LEVEL.lower(),
    ]
    if reload:
        command.append("--reload")
    return command


def run_server(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured uvicorn command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("ChatFTC stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch uvicorn")
        return 1
    return result.returncode


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and launch the API server."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if not config.MANUAL_PDF_PATH.exists():
        logger.warning(
            "Game manual not found at %s; it will contribute no context",
            config.MANUAL_PDF_PATH,
        )

    logger.info("Starting ChatFTC API at http://%s:%s", args.host, args.port)

    command = build_uvicorn_command(host=args.host, port=args.port, reload=args.reload)

    return_code = run_server(command, logger)
    if return_code != 0:
        logger.error("uvicorn exited with status %s", return_code)
    return return_code


if __name__ == "__main__":
    sys.exit(main())
