from __future__ import annotations

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from app.core.config import AppConfig
from app.core.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the Task Tracker authentication API server."
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind the HTTP server to.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port to listen on.",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only).",
    )
    return parser


def main() -> None:
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)
    logger = logging.getLogger("main")
    args = build_parser().parse_args()

    logger.info("Starting API server on %s:%s", args.host, args.port)
    uvicorn.run(
        "web_api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
