"""
Error taxonomy for the changelog watch pipeline.

Per-source errors (FetchError, ExtractionError, SummarizationError) are caught
by the run orchestrator and only skip the affected source. StoreError and the
notifier's ConfigurationError abort the run and reach the caller. A NotificationError
is recorded in the run result; the fingerprints stay updated.
"""

from typing import Optional


class ChangelogWatchError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ChangelogWatchError):
    """A required setting (recipient address, API key) is missing."""

    def __init__(self, setting: str, message: Optional[str] = None):
        self.setting = setting
        super().__init__(message or f"{setting} is not configured")


class FetchError(ChangelogWatchError):
    """Network or HTTP failure while retrieving a source."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ExtractionError(ChangelogWatchError):
    """An extraction strategy failed or produced unusable data."""


class SummarizationError(ChangelogWatchError):
    """The external text-generation call failed."""


class StoreError(ChangelogWatchError):
    """The fingerprint store could not be read or written."""


class NotificationError(ChangelogWatchError):
    """The notification could not be delivered by the mail transport."""
