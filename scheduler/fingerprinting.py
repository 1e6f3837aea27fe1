"""
Content fingerprinting for change detection.

This module provides:
- Fingerprint generation for each detection mode
- Store key scheme for per-source fingerprints
- Fingerprint storage and retrieval on top of a property store
"""

import hashlib
from typing import Dict, Iterable, Optional

import structlog

from scheduler.models import DetectionMode
from watcher.models import Source
from watcher.storage import PropertyStore

logger = structlog.get_logger(__name__)

KEY_PREFIXES = {
    DetectionMode.CONTENT_HASH: "last_hash_",
    DetectionMode.EXTERNAL_DATE: "last_date_",
    DetectionMode.RAW_CONTENT: "last_content_",
}


class ContentFingerprinter:
    """Turns extracted content into the value stored for a source."""

    def __init__(self, mode: DetectionMode = DetectionMode.CONTENT_HASH, date_analyzer=None):
        """
        Initialize the fingerprinter.

        Args:
            mode: Detection mode
            date_analyzer: Object with an async extract_update_date(source, content)
                method, required for external-date mode
        """
        if mode == DetectionMode.EXTERNAL_DATE and date_analyzer is None:
            raise ValueError("external_date detection requires a date analyzer")
        self.mode = mode
        self.date_analyzer = date_analyzer
        self.logger = logger.bind(component="fingerprinter")

    @staticmethod
    def generate_content_hash(content: str) -> str:
        """
        Generate SHA-256 hash of extracted content.

        Args:
            content: Extracted content

        Returns:
            Hex-encoded SHA-256 digest
        """
        return hashlib.sha256(content.encode('utf-8')).hexdigest()

    async def fingerprint(self, source: Source, content: str) -> str:
        """
        Compute the fingerprint of a source's extracted content.

        Raises:
            SummarizationError: In external-date mode, when the analyzer fails
        """
        if self.mode == DetectionMode.CONTENT_HASH:
            value = self.generate_content_hash(content)
            self.logger.debug("Generated content hash", source=source.name, hash=value[:16] + "...")
            return value

        if self.mode == DetectionMode.EXTERNAL_DATE:
            value = await self.date_analyzer.extract_update_date(source, content)
            self.logger.debug("Extracted update date", source=source.name, date=value)
            return value

        return content


class FingerprintManager:
    """Stores and retrieves per-source fingerprints in a property store."""

    def __init__(self, store: PropertyStore, mode: DetectionMode = DetectionMode.CONTENT_HASH):
        """
        Initialize fingerprint manager.

        Args:
            store: Key/value property store
            mode: Detection mode, selects the key namespace
        """
        self.store = store
        self.mode = mode
        self.logger = logger.bind(component="fingerprint_manager")

    @property
    def key_prefix(self) -> str:
        return KEY_PREFIXES[self.mode]

    def key_for(self, source: Source) -> str:
        """Store key for a source, e.g. last_hash_cursor."""
        return f"{self.key_prefix}{source.name}"

    async def get_fingerprint(self, source: Source) -> Optional[str]:
        """Return the stored fingerprint of a source, or None if never seen."""
        return await self.store.get_property(self.key_for(source))

    async def store_fingerprint(self, source: Source, value: str) -> None:
        """Overwrite the stored fingerprint of a source."""
        await self.store.set_property(self.key_for(source), value)
        self.logger.debug("Stored fingerprint", source=source.name, key=self.key_for(source))

    async def get_all_fingerprints(self, sources: Iterable[Source]) -> Dict[str, Optional[str]]:
        """
        Retrieve stored fingerprints for the given sources.

        Returns:
            Mapping of source name to stored value (None when never seen)
        """
        stored = await self.store.get_properties(self.key_prefix)
        return {source.name: stored.get(self.key_for(source)) for source in sources}
