"""
Main scheduler service for changelog change detection.

This module provides:
- Daily or hourly scheduling with APScheduler
- Scheduled and manual check entry points running the same pipeline
- Wiring of all pipeline components from settings
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Dict

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from scheduler.alerting import EmailNotifier, SmtpEmailTransport
from scheduler.change_detector import ChangeDetector
from scheduler.fingerprinting import ContentFingerprinter, FingerprintManager
from scheduler.models import (
    DetectionMode, NotificationConfig, RunResult, SchedulerConfig, SmtpConfig
)
from scheduler.orchestrator import RunOrchestrator
from scheduler.summarizer import GeminiSummarizer, VerbatimSummarizer
from watcher.errors import ChangelogWatchError
from watcher.extractors import default_registry
from watcher.fetcher import ContentFetcher
from watcher.storage import JsonFilePropertyStore, MongoPropertyStore, PropertyStore

logger = structlog.get_logger(__name__)

JOB_ID = "scheduled_check"


class SchedulerService:
    """Runs the check pipeline on a schedule or on demand."""

    def __init__(self, config: SchedulerConfig, orchestrator: RunOrchestrator, store: PropertyStore):
        """
        Initialize scheduler service.

        Args:
            config: Scheduler configuration
            orchestrator: Run orchestrator executed by every check
            store: Fingerprint property store, connected on start
        """
        self.config = config
        self.orchestrator = orchestrator
        self.store = store
        self.scheduler = AsyncIOScheduler(timezone=config.timezone)
        self.logger = logger.bind(component="scheduler_service")

        self._setup_scheduler_listeners()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info("Received signal, shutting down gracefully", signal=signum)
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.info(
                "Job executed",
                job_id=event.job_id,
                success=event.retval.get('success') if event.retval else None,
                duration=event.retval.get('duration', 0) if event.retval else 0
            )

        def job_error_listener(event):
            self.logger.error(
                "Job execution failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def _build_trigger(self):
        if self.config.schedule_interval == "hourly":
            return IntervalTrigger(hours=1, timezone=self.config.timezone)
        return CronTrigger(
            hour=self.config.schedule_hour,
            minute=self.config.schedule_minute,
            timezone=self.config.timezone
        )

    def setup_trigger(self) -> None:
        """Register the check job, replacing any previously registered trigger."""
        self.scheduler.add_job(
            func=self.scheduled_check,
            trigger=self._build_trigger(),
            id=JOB_ID,
            name='Changelog Check',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.logger.info(
            "Added changelog check job",
            interval=self.config.schedule_interval,
            hour=self.config.schedule_hour,
            minute=self.config.schedule_minute,
            timezone=self.config.timezone
        )

    async def start(self, run_once: bool = False) -> None:
        """Start the scheduler service."""
        try:
            self.logger.info("Starting scheduler service", run_once=run_once)

            await self.store.connect()

            if run_once:
                await self.manual_check()
                return

            self._setup_signal_handlers()
            self.setup_trigger()
            self.scheduler.start()

            self.logger.info(
                "Scheduler service started",
                timezone=self.config.timezone,
                interval=self.config.schedule_interval
            )

            try:
                while True:
                    await asyncio.sleep(1)
            except KeyboardInterrupt:
                self.logger.info("Received keyboard interrupt, shutting down...")
                self.stop()

        except Exception as e:
            self.logger.error("Failed to run scheduler service", error=str(e))
            raise
        finally:
            await self.store.disconnect()

    def stop(self) -> None:
        """Stop the scheduler service."""
        self.logger.info("Stopping scheduler service")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.logger.info("Scheduler service stopped")

    async def manual_check(self) -> RunResult:
        """
        Run the pipeline once on demand.

        Run-fatal errors (store unreachable, missing recipient) propagate.
        """
        self.logger.info("Running manual check")
        result = await self.orchestrator.run()
        self.logger.info(
            "Manual check completed",
            run_id=result.run_id,
            changed_sources=result.changed_sources,
            failed=result.failed,
            notified=result.notified
        )
        return result

    async def scheduled_check(self) -> Dict:
        """Scheduled job: run the pipeline and report the outcome to the scheduler log."""
        start_time = datetime.utcnow()
        job_id = f"check_{start_time.strftime('%Y%m%d_%H%M%S')}"

        self.logger.info("Starting scheduled check", job_id=job_id)

        try:
            result = await self.orchestrator.run()
        except ChangelogWatchError as e:
            self.logger.error(
                "Scheduled check failed",
                job_id=job_id,
                error_type=type(e).__name__,
                error=str(e)
            )
            return {
                'job_id': job_id,
                'success': False,
                'error': str(e),
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

        summary = {
            'job_id': job_id,
            'success': result.success,
            'changed_sources': result.changed_sources,
            'failed': result.failed,
            'notified': result.notified,
            'duration': (datetime.utcnow() - start_time).total_seconds(),
            'errors': result.errors
        }
        self.logger.info("Scheduled check completed", **summary)
        return summary

    def get_scheduler_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run_time': next_run_time.isoformat() if next_run_time else None,
                'trigger': str(job.trigger)
            })

        return {
            'running': self.scheduler.running,
            'timezone': self.config.timezone,
            'jobs': jobs,
            'job_count': len(jobs)
        }


def build_store(settings) -> PropertyStore:
    """Create the configured fingerprint store backend."""
    if settings.store_backend == "json":
        return JsonFilePropertyStore(settings.get_state_file_path())
    return MongoPropertyStore(
        connection_url=settings.mongodb_url,
        database_name=settings.mongodb_database,
        collection_name=settings.mongodb_collection
    )


def build_scheduler_config(settings) -> SchedulerConfig:
    """Translate application settings into the scheduler configuration."""
    return SchedulerConfig(
        schedule_interval=settings.schedule_interval,
        schedule_hour=settings.schedule_hour,
        schedule_minute=settings.schedule_minute,
        timezone=settings.timezone,
        detection_mode=DetectionMode(settings.detection_mode),
        skip_empty_extractions=settings.skip_empty_extractions,
        summarizer_enabled=settings.summarizer_enabled,
        summary_max_chars=settings.summary_max_chars,
        notification=NotificationConfig(recipient=settings.email_recipient)
    )


def build_scheduler_service(settings) -> SchedulerService:
    """
    Wire every pipeline component from application settings.

    Args:
        settings: ChangelogWatchConfig instance

    Returns:
        SchedulerService ready to start
    """
    scheduler_config = build_scheduler_config(settings)
    store = build_store(settings)

    gemini = GeminiSummarizer(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        api_base=settings.gemini_api_base,
        timeout=settings.request_timeout
    )
    if scheduler_config.summarizer_enabled:
        summarizer = gemini
    else:
        summarizer = VerbatimSummarizer(max_chars=scheduler_config.summary_max_chars)

    mode = scheduler_config.detection_mode
    fingerprinter = ContentFingerprinter(
        mode,
        date_analyzer=gemini if mode == DetectionMode.EXTERNAL_DATE else None
    )
    change_detector = ChangeDetector(
        FingerprintManager(store, mode),
        fingerprinter,
        skip_empty_extractions=scheduler_config.skip_empty_extractions
    )

    transport = SmtpEmailTransport(SmtpConfig(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        sender=settings.email_sender
    ))

    orchestrator = RunOrchestrator(
        sources=settings.sources,
        fetcher=ContentFetcher(
            timeout=settings.request_timeout,
            headers=settings.get_headers(),
            rate_limit_per_second=settings.rate_limit_per_second
        ),
        extractors=default_registry(),
        change_detector=change_detector,
        notifier=EmailNotifier(scheduler_config.notification, transport),
        summarizer=summarizer,
        summary_max_chars=scheduler_config.summary_max_chars
    )

    return SchedulerService(scheduler_config, orchestrator, store)
