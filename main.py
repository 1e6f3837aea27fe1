"""
Manual entry point: check every configured changelog page once.

Runs exactly the pipeline used by the scheduled job and exits with a
non-zero status when the run could not complete (fingerprint store
unreachable, recipient missing while changes were found).
"""

import asyncio
import sys

from scheduler.scheduler_service import build_scheduler_service
from utilities.config import config
from utilities.logger import setup_logging, get_logger


async def main() -> int:
    """Run one manual check."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info("Starting manual changelog check", sources=len(config.sources))

    service = build_scheduler_service(config)
    try:
        await service.start(run_once=True)
    except Exception as e:
        logger.error("Manual check failed", error=str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
