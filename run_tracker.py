#!/usr/bin/env python
"""
Wallet Tracker Runner.

Usage:
    python run_tracker.py serve     # HTTP API + queue consumer
    python run_tracker.py worker    # queue consumer only

Or with PM2:
    pm2 start run_tracker.py --interpreter python -- serve
"""

import argparse
import asyncio
import logging
import sys

import uvicorn

from wallet_tracker.app import build_container, configure_logging, create_app, run_worker
from wallet_tracker.config import get_config


logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run_tracker",
        description="Track token transfers and swaps of wallets on Move chains",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "worker"],
        default="serve",
        help="serve: API and consumer, worker: consumer only (default: serve)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Bind host (default: HOST env or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind port (default: PORT env or 3000)",
    )
    parser.add_argument(
        "--no-consumer",
        action="store_true",
        help="serve only: do not run the queue consumer in the API process",
    )
    return parser


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    config = get_config()
    configure_logging(config)
    container = build_container(config)

    if args.command == "worker":
        logger.info("Starting wallet tracking worker")
        try:
            asyncio.run(run_worker(container))
        except KeyboardInterrupt:
            logger.info("Worker interrupted")
        return 0

    host = args.host or config.host
    port = args.port or config.port
    logger.info(f"Server running on port {port} in {config.environment} mode")

    try:
        uvicorn.run(
            create_app(container, start_consumer=not args.no_consumer),
            host=host,
            port=port,
            log_level=(config.log_level or "info").lower(),
            access_log=False,
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
