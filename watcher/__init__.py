"""
Watcher package: everything needed to observe a changelog page.

This package contains:
- Source definitions and the default monitored pages
- Async content fetcher
- Per-source extraction strategies
- Key/value fingerprint storage backends
- Error taxonomy shared by the pipeline
"""

__version__ = "1.0.0"
