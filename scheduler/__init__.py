"""
Scheduler package for changelog change detection.

This package contains:
- Daily/hourly scheduler service
- Run orchestrator
- Change detection engine
- Content fingerprinting
- Change summarization
- Email notification
"""

__version__ = "1.0.0"
