"""
Main entry point for the scheduled changelog check.

Starts the scheduler service, which checks every configured changelog page
daily (or hourly) and emails a summary of the changed ones.

Usage:
    python scheduler_main.py          # Daemon mode
    python scheduler_main.py --once   # Single run, then exit
"""

import argparse
import asyncio
import sys

import structlog
from utilities.logger import setup_logging
from utilities.config import config
from scheduler.scheduler_service import build_scheduler_service


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch developer tool changelogs for updates.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single check and exit instead of staying resident"
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main function to start the scheduler service."""
    args = parse_args(argv)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = structlog.get_logger(__name__)

    try:
        scheduler_service = build_scheduler_service(config)

        logger.info(
            "Scheduler service configured",
            sources=[source.name for source in config.sources],
            interval=scheduler_service.config.schedule_interval,
            schedule_hour=scheduler_service.config.schedule_hour,
            schedule_minute=scheduler_service.config.schedule_minute,
            timezone=scheduler_service.config.timezone,
            detection_mode=scheduler_service.config.detection_mode.value,
            run_once=args.once
        )

        await scheduler_service.start(run_once=args.once)

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error("Scheduler service stopped with an error", error=str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
