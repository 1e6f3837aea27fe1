"""
Change detection engine for monitored changelog pages.

Compares the fingerprint of freshly extracted content with the one stored
for the source and classifies the observation:

- nothing stored yet: FIRST_SEEN, value stored, not notified
- stored value equal: UNCHANGED, store untouched
- stored value different: CHANGED, value overwritten, notified
"""

from typing import Optional

import structlog

from scheduler.fingerprinting import ContentFingerprinter, FingerprintManager
from scheduler.models import CheckResult, CheckStatus
from watcher.errors import ExtractionError
from watcher.models import Source

logger = structlog.get_logger(__name__)


class ChangeDetector:
    """Classifies source observations and keeps the fingerprint store current."""

    def __init__(
        self,
        fingerprint_manager: FingerprintManager,
        fingerprinter: Optional[ContentFingerprinter] = None,
        skip_empty_extractions: bool = False
    ):
        """
        Initialize change detector.

        Args:
            fingerprint_manager: Fingerprint storage
            fingerprinter: Fingerprint generator, defaults to one matching the
                manager's detection mode
            skip_empty_extractions: Reject empty extractions instead of
                comparing them like any other value
        """
        self.fingerprint_manager = fingerprint_manager
        self.fingerprinter = fingerprinter or ContentFingerprinter(fingerprint_manager.mode)
        self.skip_empty_extractions = skip_empty_extractions
        self.logger = logger.bind(component="change_detector")

    async def check(self, source: Source, content: str) -> CheckResult:
        """
        Check one source's extracted content against its stored fingerprint.

        Args:
            source: Source being checked
            content: Extracted content for this run

        Returns:
            CheckResult with the classification

        Raises:
            ExtractionError: If the content is empty and empty extractions are skipped
            SummarizationError: If the external date analyzer fails
            StoreError: If the fingerprint store is unreachable
        """
        if self.skip_empty_extractions and not content.strip():
            raise ExtractionError(f"extraction for {source.name} is empty")

        new_value = await self.fingerprinter.fingerprint(source, content)
        previous_value = await self.fingerprint_manager.get_fingerprint(source)

        if previous_value is None:
            status = CheckStatus.FIRST_SEEN
            await self.fingerprint_manager.store_fingerprint(source, new_value)
        elif previous_value == new_value:
            status = CheckStatus.UNCHANGED
        else:
            status = CheckStatus.CHANGED
            await self.fingerprint_manager.store_fingerprint(source, new_value)

        self.logger.debug(
            "Classified observation",
            source=source.name,
            status=status.value,
            had_previous=previous_value is not None
        )

        return CheckResult(
            source=source,
            status=status,
            new_value=new_value,
            previous_value=previous_value,
            content=content
        )
