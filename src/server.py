"""Protean Engine runner for the marketplace domain.

Starts the Engine workers used when PROTEAN_ENV=production switches event
processing to async:
- OutboxProcessor: polls the outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes the notification handlers

Usage:
    python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine

from marketplace.domain import marketplace
from marketplace.utils.logging import configure_logging


async def run():
    marketplace.init()
    engine = Engine(marketplace)
    await asyncio.gather(engine.run())


def main():
    parser = argparse.ArgumentParser(description="Marketplace Engine runner")
    parser.add_argument("--no-log-files", action="store_true", help="Log to stdout only")
    args = parser.parse_args()

    configure_logging(log_to_files=not args.no_log_files)
    asyncio.run(run())


if __name__ == "__main__":
    main()
