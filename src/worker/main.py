#!/usr/bin/env python3
"""
Generation Worker CLI.

Runs one job poller instance against the configured database.

Usage:
    python -m src.worker.main run
    python -m src.worker.main init-db
    python -m src.worker.main requeue-stale 30
"""

import asyncio
import signal
import sys
from datetime import timedelta

from modules.generation.config import get_generation_config
from modules.generation.expressions.script_backend import shutdown_sandboxes
from modules.generation.services import GenerationService
from modules.generation.storage import create_content_store
from modules.generation.worker import JobPoller
from src.database.connection import check_connection, close_connections, create_tables
from shared.utils.config import get_settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


async def run_worker() -> bool:
    """Run the poller until SIGINT/SIGTERM."""
    if not await check_connection():
        return False

    content_store = create_content_store(get_settings())
    poller = JobPoller(content_store, config=get_generation_config())

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            pass

    try:
        await poller.start()
        await stop_event.wait()
        logger.info("Shutdown requested")
        return True
    finally:
        await poller.stop()
        shutdown_sandboxes()
        await close_connections()


async def init_db() -> bool:
    """Create tables directly (development and tests; production uses Alembic)."""
    try:
        await create_tables()
        logger.info("✓ Tables created")
        return True
    except Exception as e:
        logger.error(f"✗ Error creating tables: {e}", exc_info=True)
        return False
    finally:
        await close_connections()


async def requeue_stale(minutes: int) -> bool:
    """Return IN_PROGRESS claims older than the given minutes to PENDING."""
    try:
        service = GenerationService(content_store=create_content_store(get_settings()))
        count = await service.requeue_stale_claims(timedelta(minutes=minutes))
        logger.info(f"✓ Requeued {count} stale claim(s)")
        return True
    except Exception as e:
        logger.error(f"✗ Error requeueing claims: {e}", exc_info=True)
        return False
    finally:
        await close_connections()


def print_usage():
    """Print CLI usage information."""
    print("""
Generation Worker CLI

Usage:
    python -m src.worker.main <command> [arguments]

Commands:
    run                          Start the job poller (default)
    init-db                      Create database tables
    requeue-stale <minutes>      Requeue IN_PROGRESS claims older than <minutes>
    help                         Show this help message
    """)


async def main(argv=None) -> int:
    """Main CLI entry point."""
    args = list(sys.argv[1:] if argv is None else argv)
    command = args[0].lower() if args else "run"

    if command == "help":
        print_usage()
        return 0

    elif command == "run":
        success = await run_worker()
        return 0 if success else 1

    elif command == "init-db":
        success = await init_db()
        return 0 if success else 1

    elif command == "requeue-stale":
        if len(args) < 2 or not args[1].isdigit():
            print("Error: requeue-stale requires <minutes>")
            return 1
        success = await requeue_stale(int(args[1]))
        return 0 if success else 1

    else:
        print(f"Unknown command: {command}")
        print_usage()
        return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
