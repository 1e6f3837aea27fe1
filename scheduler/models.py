"""
Models for scheduling, change detection and notification.

This module defines Pydantic models for:
- Detection modes and check classifications
- Per-source check results
- Outbound notifications
- Run statistics
- Scheduler, notification and SMTP configuration
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from watcher.models import Source


class DetectionMode(str, Enum):
    """What is stored per source to detect a change."""
    CONTENT_HASH = "content_hash"
    EXTERNAL_DATE = "external_date"
    RAW_CONTENT = "raw_content"


class CheckStatus(str, Enum):
    """Classification of one source observation."""
    FIRST_SEEN = "first_seen"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class CheckResult(BaseModel):
    """Result of checking one source during one run."""
    source: Source = Field(..., description="Checked source")
    status: CheckStatus = Field(..., description="Classification of the observation")
    new_value: str = Field(..., description="Fingerprint observed in this run")
    previous_value: Optional[str] = Field(default=None, description="Fingerprint stored before this run")
    content: str = Field(default="", description="Extracted content the fingerprint was computed from")
    summary: Optional[str] = Field(default=None, description="Human-readable description of the change")
    checked_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def changed(self) -> bool:
        return self.status == CheckStatus.CHANGED


class Notification(BaseModel):
    """One outbound message covering every changed source of a run."""
    recipient: str = Field(..., description="Recipient email address")
    subject: str = Field(..., description="Subject line listing changed sources")
    html_body: str = Field(..., description="HTML body, one section per source")
    results: List[CheckResult] = Field(default_factory=list)
    sent_at: Optional[datetime] = Field(default=None)


class RunResult(BaseModel):
    """Statistics for one full pass over all sources."""
    run_id: str = Field(..., description="Unique run identifier")
    run_timestamp: datetime = Field(default_factory=datetime.utcnow)
    sources_checked: int = Field(default=0)
    first_seen: int = Field(default=0)
    unchanged: int = Field(default=0)
    changed: int = Field(default=0)
    failed: int = Field(default=0)

    changed_sources: List[str] = Field(default_factory=list)
    notified: bool = Field(default=False)
    duration_seconds: float = Field(default=0.0)

    success: bool = Field(default=True)
    errors: List[str] = Field(default_factory=list)


class NotificationConfig(BaseModel):
    """Configuration for the email notifier."""
    enabled: bool = Field(default=True)
    log_enabled: bool = Field(default=True)
    recipient: Optional[str] = Field(default=None, description="EMAIL_RECIPIENT")
    subject_prefix: str = Field(default="Update detected")


class SmtpConfig(BaseModel):
    """Configuration for the SMTP email transport."""
    host: str = Field(default="localhost")
    port: int = Field(default=587, ge=1, le=65535)
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    use_tls: bool = Field(default=True)
    sender: str = Field(default="changelog-watch@localhost")
    timeout: float = Field(default=30.0)


class SchedulerConfig(BaseModel):
    """Configuration for the scheduler and the detection pipeline."""
    # Scheduling
    schedule_interval: str = Field(default="daily", pattern="^(daily|hourly)$")
    schedule_hour: int = Field(default=9, ge=0, le=23, description="Hour to run daily check (24h format)")
    schedule_minute: int = Field(default=0, ge=0, le=59, description="Minute to run the check")
    timezone: str = Field(default="UTC", description="Timezone for scheduling")

    # Change detection
    detection_mode: DetectionMode = Field(default=DetectionMode.CONTENT_HASH)
    skip_empty_extractions: bool = Field(
        default=False,
        description="Skip sources whose extraction is empty instead of comparing the empty value"
    )

    # Summaries
    summarizer_enabled: bool = Field(default=True)
    summary_max_chars: int = Field(default=2000, ge=100)

    # Notification
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
