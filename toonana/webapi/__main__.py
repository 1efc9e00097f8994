"""Run the toonana API server with uvicorn."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

import uvicorn

from .. import config_manager as cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the toonana generation API")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: %(default)s)",
    )
    parser.add_argument("--port", type=int, default=8765, help="TCP port (default: %(default)s)")
    parser.add_argument(
        "--data-dir",
        help=f"Application data directory; overrides ${cfg.DATA_DIR_ENV}.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="uvicorn log level (default: %(default)s)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if args.data_dir:
        os.environ[cfg.DATA_DIR_ENV] = args.data_dir

    uvicorn.run(
        "toonana.webapi.application:create_app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        factory=True,
    )


if __name__ == "__main__":  # pragma: no cover - CLI integration
    try:
        main()
    except KeyboardInterrupt:  # pragma: no cover - user initiated shutdown
        logging.getLogger(__name__).info("Server interrupted by user")
