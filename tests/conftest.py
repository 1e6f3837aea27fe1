"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import AsyncMock

from scheduler.alerting import EmailNotifier, EmailTransport
from scheduler.change_detector import ChangeDetector
from scheduler.fingerprinting import ContentFingerprinter, FingerprintManager
from scheduler.models import DetectionMode, NotificationConfig, SchedulerConfig
from scheduler.orchestrator import RunOrchestrator
from watcher.extractors import ExtractorRegistry
from watcher.fetcher import ContentFetcher
from watcher.models import Source
from watcher.storage import PropertyStore


class InMemoryPropertyStore(PropertyStore):
    """Property store kept in a dict; records every write."""

    def __init__(self, initial=None):
        self.properties = dict(initial or {})
        self.writes = []
        self.connected = False

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def get_property(self, key):
        return self.properties.get(key)

    async def set_property(self, key, value):
        self.writes.append((key, value))
        self.properties[key] = value

    async def get_properties(self, prefix=""):
        return {k: v for k, v in self.properties.items() if k.startswith(prefix)}


@pytest.fixture
def memory_store():
    """Empty in-memory property store."""
    return InMemoryPropertyStore()


@pytest.fixture
def sample_source():
    """Source without an extraction strategy (raw content is compared)."""
    return Source(name="X", url="https://example.com/x/changelog")


@pytest.fixture
def second_source():
    return Source(name="Y", url="https://example.com/y/changelog")


@pytest.fixture
def sample_changelog_html():
    """Changelog page with two entries, newest first."""
    return """
    <html>
        <head>
            <title>Changelog</title>
            <script>window.analytics = {};</script>
        </head>
        <body>
            <nav>Docs Pricing Changelog</nav>
            <main>
                <article class="entry">
                    <h2>1.4.0</h2>
                    <time datetime="2025-03-10">March 10, 2025</time>
                    <p>Added   background agents.</p>
                </article>
                <article class="entry">
                    <h2>1.3.0</h2>
                    <p>Faster tab completion.</p>
                </article>
            </main>
        </body>
    </html>
    """


@pytest.fixture
def mock_transport():
    """Email transport that records calls instead of sending."""
    return AsyncMock(spec=EmailTransport)


@pytest.fixture
def notification_config():
    return NotificationConfig(recipient="team@example.com")


@pytest.fixture
def scheduler_config(notification_config):
    """Create scheduler configuration for testing."""
    return SchedulerConfig(
        schedule_interval="daily",
        schedule_hour=9,
        schedule_minute=0,
        timezone="UTC",
        notification=notification_config
    )


@pytest.fixture
def make_fetcher():
    """Build a fetcher stub serving page text (or raising) per URL."""
    def _make(pages):
        fetcher = AsyncMock(spec=ContentFetcher)

        async def fetch_text(url):
            page = pages[str(url)]
            if isinstance(page, Exception):
                raise page
            return page

        fetcher.fetch_text.side_effect = fetch_text
        return fetcher
    return _make


@pytest.fixture
def make_orchestrator(memory_store, mock_transport, make_fetcher):
    """Build an orchestrator over stubbed network, store and mail transport."""
    def _make(
        sources,
        pages,
        store=None,
        summarizer=None,
        recipient="team@example.com",
        mode=DetectionMode.CONTENT_HASH,
        date_analyzer=None,
        skip_empty_extractions=False,
        extractors=None
    ):
        store = store if store is not None else memory_store
        detector = ChangeDetector(
            FingerprintManager(store, mode),
            ContentFingerprinter(mode, date_analyzer=date_analyzer),
            skip_empty_extractions=skip_empty_extractions
        )
        notifier = EmailNotifier(NotificationConfig(recipient=recipient), mock_transport)
        return RunOrchestrator(
            sources=sources,
            fetcher=make_fetcher(pages),
            extractors=extractors or ExtractorRegistry(),
            change_detector=detector,
            notifier=notifier,
            summarizer=summarizer
        )
    return _make
