"""
One-shot background dispatch of notification emails.

Lifecycle transitions hand a rendered ``NotificationDirective`` to a sink
once the status change is committed. The sink never blocks the caller and
never raises: delivery failures are logged with the request id.
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Set

from detachements.core.config import settings
from detachements.services.LeaveNotificationFormatter import NotificationDirective
from detachements.services.MicrosoftGraphClientPublic import MicrosoftGraphClientPublic

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def enqueue(self, directive: NotificationDirective) -> None:
        ...


class BackgroundNotificationSink:
    """Sends each directive in its own asyncio task."""

    def __init__(self, mailer: MicrosoftGraphClientPublic):
        self.mailer = mailer
        self._tasks: Set[asyncio.Task] = set()

    def enqueue(self, directive: NotificationDirective) -> None:
        task = asyncio.create_task(self._deliver(directive))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"📨 Queued '{directive.kind}' email for request {directive.request_id}")

    async def _deliver(self, directive: NotificationDirective) -> None:
        try:
            await self.mailer.send_email(
                to_emails=directive.to,
                subject=directive.subject,
                body_html=directive.html,
                cc_emails=directive.cc,
            )
            logger.info(f"✅ '{directive.kind}' email sent for request {directive.request_id}")
        except Exception as e:
            logger.error(
                f"❌ [MAIL ERROR] '{directive.kind}' email for request {directive.request_id} failed: {e}"
            )
            # Plain-text copy for a manual resend
            logger.warning(
                f"📝 Undelivered message for request {directive.request_id}\n"
                f"To: {', '.join(directive.to)}\n"
                f"Cc: {', '.join(directive.cc)}\n"
                f"Subject: {directive.subject}\n\n{directive.text}"
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every queued email to finish (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_sink: Optional[BackgroundNotificationSink] = None


def get_mailer() -> MicrosoftGraphClientPublic:
    """Create the Graph mail client from settings."""
    if not settings.mail_configured:
        logger.warning("⚠️ [MAIL] Microsoft Graph not configured: notifications will fail and be logged.")
    return MicrosoftGraphClientPublic(
        tenant_id=settings.MICROSOFT_TENANT_ID,
        client_id=settings.MICROSOFT_CLIENT_ID,
        client_secret=settings.MICROSOFT_CLIENT_SECRET,
        default_sender=settings.MAIL_FROM,
        sender_name=settings.MAIL_FROM_NAME,
    )


def get_notification_sink() -> NotificationSink:
    """FastAPI dependency returning the process-wide background sink."""
    global _sink
    if _sink is None:
        _sink = BackgroundNotificationSink(get_mailer())
    return _sink


async def drain_notification_sink() -> None:
    if _sink is not None:
        await _sink.drain()


class RecordingNotificationSink:
    """Keeps directives in memory instead of sending them."""

    def __init__(self):
        self.directives: List[NotificationDirective] = []

    def enqueue(self, directive: NotificationDirective) -> None:
        self.directives.append(directive)
