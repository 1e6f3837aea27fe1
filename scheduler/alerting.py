"""
Notification of detected changes.

This module provides:
- Email composition for all sources changed in a run
- SMTP email transport
- Log-based alert for every notification sent
"""

import asyncio
import html
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Sequence

import structlog

from scheduler.models import CheckResult, Notification, NotificationConfig, SmtpConfig
from watcher.errors import ConfigurationError, NotificationError

logger = structlog.get_logger(__name__)


class EmailTransport:
    """Interface for outbound email."""

    async def send_email(self, to: str, subject: str, html_body: str) -> None:
        raise NotImplementedError


class SmtpEmailTransport(EmailTransport):
    """Sends HTML email through an SMTP relay."""

    def __init__(self, config: SmtpConfig):
        self.config = config
        self.logger = logger.bind(component="smtp_transport")

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.config.sender
        msg["To"] = to
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            if self.config.use_tls:
                server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.send_message(msg)

    async def send_email(self, to: str, subject: str, html_body: str) -> None:
        """Send one message; smtplib blocks, so it runs in a worker thread."""
        msg = self._build_message(to, subject, html_body)
        try:
            await asyncio.to_thread(self._send, msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("Email delivery failed", to=to, host=self.config.host, error=str(e))
            raise NotificationError(f"SMTP delivery to {to} failed: {e}") from e
        self.logger.info("Email sent", to=to, subject=subject)


class EmailNotifier:
    """Composes and dispatches the per-run change notification."""

    def __init__(self, notification_config: NotificationConfig, transport: EmailTransport):
        """
        Initialize notifier.

        Args:
            notification_config: Notification configuration
            transport: Email transport used for dispatch
        """
        self.config = notification_config
        self.transport = transport
        self.logger = logger.bind(component="email_notifier")

    def compose(self, recipient: str, results: Sequence[CheckResult]) -> Notification:
        """Build the message for an ordered sequence of changed results."""
        names = [result.source.name for result in results]
        subject = f"{self.config.subject_prefix}: {', '.join(names)}"

        sections = []
        for result in results:
            summary = result.summary if result.summary is not None else result.content
            sections.append(
                f'<h3><a href="{html.escape(str(result.source.url))}">'
                f'{html.escape(result.source.name)}</a></h3>'
                f'<p>{html.escape(summary).replace(chr(10), "<br>")}</p>'
            )

        return Notification(
            recipient=recipient,
            subject=subject,
            html_body="".join(sections),
            results=list(results)
        )

    async def notify(self, results: Sequence[CheckResult]) -> Optional[Notification]:
        """
        Send one notification covering every changed result.

        Args:
            results: Changed results of a run, in source order

        Returns:
            The sent Notification, or None when nothing was sent

        Raises:
            ConfigurationError: If no recipient is configured
            NotificationError: If the transport fails to deliver the message
        """
        if not results:
            self.logger.debug("No changes to notify")
            return None

        if not self.config.enabled:
            self.logger.info("Notifications are disabled", changes_count=len(results))
            return None

        if not self.config.recipient:
            raise ConfigurationError("EMAIL_RECIPIENT")

        notification = self.compose(self.config.recipient, results)
        try:
            await self.transport.send_email(
                notification.recipient,
                notification.subject,
                notification.html_body
            )
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(f"email transport failed: {e!r}") from e
        notification.sent_at = datetime.utcnow()

        if self.config.log_enabled:
            self._send_log_alert(notification)

        return notification

    def _send_log_alert(self, notification: Notification) -> None:
        """Log alert for a sent notification."""
        self.logger.warning(
            "Change detection alert",
            message=self._create_log_content(notification.results),
            changes_count=len(notification.results),
            recipient=notification.recipient
        )

    def _create_log_content(self, results: List[CheckResult]) -> str:
        """Create log message content."""
        return f"Detected {len(results)} changes: " + "; ".join(
            f"{result.source.name} ({result.source.url})" for result in results
        )
