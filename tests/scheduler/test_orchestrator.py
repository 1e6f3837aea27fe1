"""
Scenario tests for a full check run.
Network, store and mail transport are stubbed; everything else is real.
"""

import hashlib
import smtplib

import httpx
import pytest
from unittest.mock import AsyncMock

from scheduler.models import CheckStatus, DetectionMode
from scheduler.orchestrator import RunOrchestrator, remediation_hint
from scheduler.summarizer import GeminiSummarizer, Summarizer
from watcher.errors import (
    ConfigurationError,
    ExtractionError,
    FetchError,
    NotificationError,
    StoreError,
    SummarizationError,
)
from watcher.extractors import CssSelectorExtractor, ExtractorRegistry
from watcher.models import Source
from watcher.storage import PropertyStore


def sha256(text):
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def url_of(source):
    return str(source.url)


class TestRunScenarios:
    """Runs over a single source X across three consecutive runs."""

    @pytest.mark.asyncio
    async def test_first_run_is_first_seen(self, make_orchestrator, memory_store, mock_transport, sample_source):
        orchestrator = make_orchestrator([sample_source], {url_of(sample_source): "v1"})

        result = await orchestrator.run()

        assert result.first_seen == 1
        assert result.changed == 0
        assert result.notified is False
        assert memory_store.properties == {"last_hash_X": sha256("v1")}
        mock_transport.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_run_without_change_is_unchanged(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        pages = {url_of(sample_source): "v1"}
        await make_orchestrator([sample_source], pages).run()
        writes_after_first_run = list(memory_store.writes)

        result = await make_orchestrator([sample_source], pages).run()

        assert result.unchanged == 1
        assert memory_store.writes == writes_after_first_run
        mock_transport.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_third_run_with_new_content_notifies(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        pages = {url_of(sample_source): "v1"}
        await make_orchestrator([sample_source], pages).run()
        await make_orchestrator([sample_source], pages).run()

        pages[url_of(sample_source)] = "v2"
        result = await make_orchestrator([sample_source], pages).run()

        assert result.changed == 1
        assert result.changed_sources == ["X"]
        assert result.notified is True
        assert memory_store.properties == {"last_hash_X": sha256("v2")}
        mock_transport.send_email.assert_called_once()
        to, subject, html_body = mock_transport.send_email.call_args[0]
        assert "X" in subject
        assert "v2" in html_body

    @pytest.mark.asyncio
    async def test_summarizer_network_error_still_notifies(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        def handler(request):
            raise httpx.ConnectError("network unreachable", request=request)

        summarizer = GeminiSummarizer(api_key="test-key", transport=httpx.MockTransport(handler))
        memory_store.properties["last_hash_X"] = sha256("v1")

        result = await make_orchestrator(
            [sample_source], {url_of(sample_source): "v2"}, summarizer=summarizer
        ).run()

        assert result.changed == 1
        mock_transport.send_email.assert_called_once()
        html_body = mock_transport.send_email.call_args[0][2]
        assert "Summary unavailable" in html_body
        assert "network unreachable" in html_body

    @pytest.mark.asyncio
    async def test_only_changed_source_is_notified(
        self, make_orchestrator, memory_store, mock_transport, sample_source, second_source
    ):
        memory_store.properties["last_hash_X"] = sha256("v1")
        memory_store.properties["last_hash_Y"] = sha256("y1")
        pages = {url_of(sample_source): "v2", url_of(second_source): "y1"}

        result = await make_orchestrator([sample_source, second_source], pages).run()

        assert result.changed == 1
        assert result.unchanged == 1
        mock_transport.send_email.assert_called_once()
        to, subject, html_body = mock_transport.send_email.call_args[0]
        assert subject == "Update detected: X"
        assert "<h3>" in html_body
        assert html_body.count("<h3>") == 1
        assert "y1" not in html_body

    @pytest.mark.asyncio
    async def test_mail_delivery_failure_is_recorded(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        memory_store.properties["last_hash_X"] = sha256("v1")
        mock_transport.send_email.side_effect = smtplib.SMTPServerDisconnected("relay down")

        result = await make_orchestrator([sample_source], {url_of(sample_source): "v2"}).run()

        assert result.changed_sources == ["X"]
        assert result.notified is False
        assert result.success is False
        assert any("relay down" in error for error in result.errors)
        assert memory_store.properties["last_hash_X"] == sha256("v2")

    @pytest.mark.asyncio
    async def test_missing_recipient_keeps_store_updates(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        memory_store.properties["last_hash_X"] = sha256("v1")

        orchestrator = make_orchestrator(
            [sample_source], {url_of(sample_source): "v2"}, recipient=None
        )

        with pytest.raises(ConfigurationError):
            await orchestrator.run()

        assert memory_store.properties["last_hash_X"] == sha256("v2")
        mock_transport.send_email.assert_not_called()


class TestRunOrchestrator:
    """Failure isolation and pipeline wiring."""

    @pytest.mark.asyncio
    async def test_fetch_error_skips_source_only(
        self, make_orchestrator, memory_store, mock_transport, sample_source, second_source
    ):
        memory_store.properties["last_hash_Y"] = sha256("y1")
        pages = {
            url_of(sample_source): FetchError(url_of(sample_source), "connection refused"),
            url_of(second_source): "y2",
        }

        result = await make_orchestrator([sample_source, second_source], pages).run()

        assert result.failed == 1
        assert result.success is False
        assert result.changed_sources == ["Y"]
        assert "X: connection refused" in result.errors
        assert "last_hash_X" not in memory_store.properties
        mock_transport.send_email.assert_called_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_skips_source_only(
        self, make_orchestrator, memory_store, sample_source, second_source
    ):
        pages = {
            url_of(sample_source): RuntimeError("bug"),
            url_of(second_source): "y1",
        }

        result = await make_orchestrator([sample_source, second_source], pages).run()

        assert result.failed == 1
        assert result.first_seen == 1
        assert "last_hash_Y" in memory_store.properties

    @pytest.mark.asyncio
    async def test_extraction_strategy_applied_before_hashing(self, make_orchestrator, memory_store):
        source = Source(name="tool", url="https://example.com/tool/changelog", extraction_strategy="h2")
        registry = ExtractorRegistry({"h2": CssSelectorExtractor("h2")})
        pages = {url_of(source): "<h2>1.0</h2><footer>build 123</footer>"}

        await make_orchestrator([source], pages, extractors=registry).run()
        pages[url_of(source)] = "<h2>1.0</h2><footer>build 124</footer>"
        result = await make_orchestrator([source], pages, extractors=registry).run()

        assert result.unchanged == 1
        assert memory_store.properties["last_hash_tool"] == sha256("1.0")

    @pytest.mark.asyncio
    async def test_empty_extraction_skipped_when_configured(self, make_orchestrator, memory_store):
        source = Source(name="tool", url="https://example.com/tool/changelog", extraction_strategy="h2")
        registry = ExtractorRegistry({"h2": CssSelectorExtractor("h2")})
        memory_store.properties["last_hash_tool"] = sha256("1.0")

        result = await make_orchestrator(
            [source],
            {url_of(source): "<p>page redesigned</p>"},
            extractors=registry,
            skip_empty_extractions=True
        ).run()

        assert result.failed == 1
        assert memory_store.properties["last_hash_tool"] == sha256("1.0")

    @pytest.mark.asyncio
    async def test_store_error_aborts_run(self, make_orchestrator, mock_transport, sample_source, second_source):
        store = AsyncMock(spec=PropertyStore)
        store.get_property.side_effect = StoreError("unreachable")
        pages = {url_of(sample_source): "v1", url_of(second_source): "y1"}

        with pytest.raises(StoreError):
            await make_orchestrator([sample_source, second_source], pages, store=store).run()

        assert store.get_property.call_count == 1
        mock_transport.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_not_called_without_changes(self, make_orchestrator, sample_source):
        orchestrator = make_orchestrator([sample_source], {url_of(sample_source): "v1"})
        orchestrator.notifier = AsyncMock()

        await orchestrator.run()

        orchestrator.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_called_once_with_all_changes(
        self, make_orchestrator, memory_store, sample_source, second_source
    ):
        memory_store.properties["last_hash_X"] = sha256("v1")
        memory_store.properties["last_hash_Y"] = sha256("y1")
        orchestrator = make_orchestrator(
            [sample_source, second_source],
            {url_of(sample_source): "v2", url_of(second_source): "y2"}
        )
        orchestrator.notifier = AsyncMock()

        await orchestrator.run()

        orchestrator.notifier.notify.assert_called_once()
        results = orchestrator.notifier.notify.call_args[0][0]
        assert [r.source.name for r in results] == ["X", "Y"]
        assert all(r.status == CheckStatus.CHANGED for r in results)

    @pytest.mark.asyncio
    async def test_missing_summarizer_key_falls_back_to_content(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        summarizer = GeminiSummarizer(api_key=None)
        memory_store.properties["last_hash_X"] = sha256("v1")

        result = await make_orchestrator(
            [sample_source], {url_of(sample_source): "v2 notes"}, summarizer=summarizer
        ).run()

        assert result.changed == 1
        assert "v2 notes" in mock_transport.send_email.call_args[0][2]

    @pytest.mark.asyncio
    async def test_summarizer_exception_yields_placeholder(
        self, make_orchestrator, memory_store, mock_transport, sample_source
    ):
        summarizer = AsyncMock(spec=Summarizer)
        summarizer.summarize.side_effect = SummarizationError("quota exceeded")
        memory_store.properties["last_hash_X"] = sha256("v1")

        await make_orchestrator(
            [sample_source], {url_of(sample_source): "v2"}, summarizer=summarizer
        ).run()

        assert "Summary unavailable: quota exceeded" in mock_transport.send_email.call_args[0][2]

    @pytest.mark.asyncio
    async def test_raw_content_mode_passes_previous_content(
        self, make_orchestrator, memory_store, sample_source
    ):
        summarizer = AsyncMock(spec=Summarizer)
        summarizer.summarize.return_value = "diff summary"
        memory_store.properties["last_content_X"] = "v1"

        await make_orchestrator(
            [sample_source],
            {url_of(sample_source): "v2"},
            summarizer=summarizer,
            mode=DetectionMode.RAW_CONTENT
        ).run()

        summarizer.summarize.assert_called_once_with(sample_source, "v1", "v2")
        assert memory_store.properties["last_content_X"] == "v2"

    @pytest.mark.asyncio
    async def test_hash_mode_does_not_pass_previous_hash(
        self, make_orchestrator, memory_store, sample_source
    ):
        summarizer = AsyncMock(spec=Summarizer)
        summarizer.summarize.return_value = "summary"
        memory_store.properties["last_hash_X"] = sha256("v1")

        await make_orchestrator(
            [sample_source], {url_of(sample_source): "v2"}, summarizer=summarizer
        ).run()

        summarizer.summarize.assert_called_once_with(sample_source, None, "v2")

    @pytest.mark.asyncio
    async def test_external_date_analyzer_failure_skips_source(
        self, make_orchestrator, memory_store, sample_source
    ):
        analyzer = AsyncMock()
        analyzer.extract_update_date.side_effect = ConfigurationError("GEMINI_API_KEY")

        result = await make_orchestrator(
            [sample_source],
            {url_of(sample_source): "page"},
            mode=DetectionMode.EXTERNAL_DATE,
            date_analyzer=analyzer
        ).run()

        assert result.failed == 1
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_sources_processed_in_order(self, make_orchestrator, sample_source, second_source):
        pages = {url_of(sample_source): "v1", url_of(second_source): "y1"}
        orchestrator = make_orchestrator([second_source, sample_source], pages)

        await orchestrator.run()

        fetched = [call.args[0] for call in orchestrator.fetcher.fetch_text.call_args_list]
        assert fetched == [url_of(second_source), url_of(sample_source)]


class TestRemediationHint:

    def test_fetch_hint(self):
        assert remediation_hint(FetchError("u", "m")) == "verify URL and network connectivity"

    def test_extraction_hint(self):
        assert "extraction strategy" in remediation_hint(ExtractionError("m"))

    def test_configuration_hint_names_setting(self):
        assert remediation_hint(ConfigurationError("EMAIL_RECIPIENT")) == "set EMAIL_RECIPIENT"

    def test_notification_hint(self):
        assert "SMTP_HOST" in remediation_hint(NotificationError("relay down"))
