"""
Run orchestration: one sequential pass over every configured source.

For each source, in configuration order: fetch, extract, detect and, when
the source changed, summarize. A failing source is logged with a
remediation hint and skipped. After the last source the notifier is called
once with all changed results; a delivery failure is recorded in the run
result and does not roll back the stored fingerprints.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Sequence

import structlog

from scheduler.alerting import EmailNotifier
from scheduler.change_detector import ChangeDetector
from scheduler.models import CheckResult, CheckStatus, DetectionMode, RunResult
from scheduler.summarizer import Summarizer, VerbatimSummarizer, placeholder
from utilities.logger import RunLogger
from watcher.errors import (
    ChangelogWatchError,
    ConfigurationError,
    ExtractionError,
    FetchError,
    NotificationError,
    StoreError,
    SummarizationError,
)
from watcher.extractors import ExtractorRegistry
from watcher.fetcher import ContentFetcher
from watcher.models import Source

logger = structlog.get_logger(__name__)


def remediation_hint(error: Exception) -> str:
    """What an operator should check for a given per-source failure."""
    if isinstance(error, FetchError):
        return "verify URL and network connectivity"
    if isinstance(error, ExtractionError):
        return "check the extraction strategy against the current page markup"
    if isinstance(error, SummarizationError):
        return "check GEMINI_API_KEY and the availability of the Gemini API"
    if isinstance(error, ConfigurationError):
        return f"set {error.setting}"
    if isinstance(error, NotificationError):
        return "check SMTP_HOST, SMTP_PORT and the SMTP credentials"
    return "inspect the error details in the log"


class RunOrchestrator:
    """Processes all sources once and notifies about the changed ones."""

    def __init__(
        self,
        sources: Sequence[Source],
        fetcher: ContentFetcher,
        extractors: ExtractorRegistry,
        change_detector: ChangeDetector,
        notifier: EmailNotifier,
        summarizer: Optional[Summarizer] = None,
        summary_max_chars: int = 2000
    ):
        """
        Initialize the orchestrator.

        Args:
            sources: Sources in processing order
            fetcher: Content fetcher
            extractors: Extraction strategy registry
            change_detector: Change detector
            notifier: Notifier called once per run
            summarizer: Summarizer for changed sources; changed content is
                used verbatim when omitted
            summary_max_chars: Maximum length of verbatim summaries
        """
        self.sources = list(sources)
        self.fetcher = fetcher
        self.extractors = extractors
        self.change_detector = change_detector
        self.notifier = notifier
        self.verbatim = VerbatimSummarizer(max_chars=summary_max_chars)
        self.summarizer = summarizer or self.verbatim
        self.run_logger = RunLogger("orchestrator")
        self.logger = logger.bind(component="orchestrator")

    async def check_source(self, source: Source) -> CheckResult:
        """
        Fetch, extract and classify one source, summarizing it if it changed.

        Raises:
            FetchError, ExtractionError, SummarizationError, ConfigurationError:
                Per-source failures
            StoreError: If the fingerprint store is unreachable
        """
        raw_content = await self.fetcher.fetch_text(str(source.url))
        content = self.extractors.extract(source, raw_content)
        result = await self.change_detector.check(source, content)

        if result.status == CheckStatus.CHANGED:
            result.summary = await self._summarize(result)

        return result

    async def _summarize(self, result: CheckResult) -> str:
        """Summarize a changed result; never fails the source."""
        old_content = None
        if self.change_detector.fingerprint_manager.mode == DetectionMode.RAW_CONTENT:
            old_content = result.previous_value

        try:
            return await self.summarizer.summarize(result.source, old_content, result.content)
        except ConfigurationError as e:
            self.logger.warning(
                "Summarizer not configured, using changed content verbatim",
                source=result.source.name,
                error=str(e),
                hint=remediation_hint(e)
            )
            return await self.verbatim.summarize(result.source, old_content, result.content)
        except SummarizationError as e:
            self.logger.warning("Summarization failed", source=result.source.name, error=str(e))
            return placeholder(str(e))
        except Exception as e:
            # Fingerprint already stored: the change must still reach the notification
            self.logger.error("Summarizer raised unexpectedly", source=result.source.name, error=repr(e))
            return placeholder(repr(e))

    async def run(self) -> RunResult:
        """
        Process every source once.

        Returns:
            RunResult with the run statistics

        Raises:
            StoreError: If the fingerprint store is unreachable
            ConfigurationError: If changes were found but no recipient is configured
        """
        run = RunResult(run_id=str(uuid.uuid4()))
        self.run_logger.clear_context().bind_context(run_id=run.run_id)
        self.run_logger.log_run_start(len(self.sources))

        changed_results: List[CheckResult] = []
        delivery_failed = False

        for source in self.sources:
            try:
                result = await self.check_source(source)
            except StoreError:
                self.logger.error("Fingerprint store unavailable, aborting run", source=source.name)
                raise
            except ChangelogWatchError as e:
                run.failed += 1
                run.errors.append(f"{source.name}: {e}")
                self.run_logger.log_source_failed(source.name, str(e), remediation_hint(e))
                continue
            except Exception as e:
                run.failed += 1
                run.errors.append(f"{source.name}: unexpected error: {e}")
                self.run_logger.log_source_failed(
                    source.name, f"unexpected error: {e!r}", remediation_hint(e)
                )
                continue

            run.sources_checked += 1
            if result.status == CheckStatus.FIRST_SEEN:
                run.first_seen += 1
            elif result.status == CheckStatus.UNCHANGED:
                run.unchanged += 1
            else:
                run.changed += 1
                run.changed_sources.append(source.name)
                changed_results.append(result)

            self.run_logger.log_source_checked(source.name, result.status.value)

        if changed_results:
            try:
                notification = await self.notifier.notify(changed_results)
            except ConfigurationError as e:
                self.logger.error(
                    "Cannot send notification",
                    error=str(e),
                    hint=remediation_hint(e),
                    changed_sources=run.changed_sources
                )
                raise
            except NotificationError as e:
                run.errors.append(f"notification: {e}")
                self.logger.error(
                    "Notification not delivered",
                    error=str(e),
                    hint=remediation_hint(e),
                    changed_sources=run.changed_sources
                )
                notification = None
                delivery_failed = True
            run.notified = notification is not None

        run.success = run.failed == 0 and not delivery_failed
        run.duration_seconds = (datetime.utcnow() - run.run_timestamp).total_seconds()
        self.run_logger.log_run_complete(run.changed, run.failed, run.duration_seconds)
        return run
