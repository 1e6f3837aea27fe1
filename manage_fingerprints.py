#!/usr/bin/env python3
"""
Fingerprint Management Utility

This script shows what the watcher currently remembers per source:
- List stored fingerprints for every configured source
- Show the stored fingerprint of one source
"""

import asyncio
import sys

from utilities.logger import setup_logging
from utilities.config import config
from scheduler.fingerprinting import FingerprintManager
from scheduler.models import DetectionMode
from scheduler.scheduler_service import build_store


def _fingerprint_manager() -> FingerprintManager:
    return FingerprintManager(build_store(config), DetectionMode(config.detection_mode))


async def list_all_fingerprints() -> int:
    """List stored fingerprints for all configured sources."""
    print("\n" + "=" * 80)
    print("ALL FINGERPRINTS")
    print("=" * 80)

    fingerprint_manager = _fingerprint_manager()
    try:
        await fingerprint_manager.store.connect()
        fingerprints = await fingerprint_manager.get_all_fingerprints(config.sources)
    finally:
        await fingerprint_manager.store.disconnect()

    print(f"Detection mode: {config.detection_mode}")
    print()
    for i, source in enumerate(config.sources, 1):
        value = fingerprints[source.name]
        print(f"{i:3d}. {source.name}")
        print(f"     URL: {source.url}")
        print(f"     Key: {fingerprint_manager.key_for(source)}")
        if value is None:
            print("     Fingerprint: (never seen)")
        else:
            print(f"     Fingerprint: {value[:64]}{'...' if len(value) > 64 else ''}")
        print()
    return 0


async def show_fingerprint(name: str) -> int:
    """Show the full stored fingerprint of one source."""
    sources = {source.name: source for source in config.sources}
    if name not in sources:
        print(f"Unknown source: {name}")
        print(f"Configured sources: {', '.join(sources)}")
        return 1

    fingerprint_manager = _fingerprint_manager()
    try:
        await fingerprint_manager.store.connect()
        value = await fingerprint_manager.get_fingerprint(sources[name])
    finally:
        await fingerprint_manager.store.disconnect()

    if value is None:
        print(f"No fingerprint stored for {name}")
        return 1
    print(value)
    return 0


async def main(argv=None) -> int:
    """Main function."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python manage_fingerprints.py [list|show] [source name]")
        print()
        print("Commands:")
        print("  list     - List stored fingerprints for all configured sources")
        print("  show     - Print the stored fingerprint of one source")
        return 1

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    command = argv[0].lower()
    if command == "list":
        return await list_all_fingerprints()
    if command == "show":
        if len(argv) < 2:
            print("Usage: python manage_fingerprints.py show <source name>")
            return 1
        return await show_fingerprint(argv[1])

    print(f"Unknown command: {command}")
    print("Available commands: list, show")
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
