"""
Notification dispatch boundary
Signals the external notification collaborator whenever a commitment changes state.
Delivery is best-effort: it runs after the change is committed and a failure is
only ever logged, never raised back into the scheduling flow.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

import httpx
from fastapi import BackgroundTasks

from ..config import NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL

logger = logging.getLogger(__name__)

COMMITMENT_CREATED = "commitment.created"
COMMITMENT_RESCHEDULED = "commitment.rescheduled"
COMMITMENT_CANCELLED = "commitment.cancelled"
COMMITMENT_CONFIRMED = "commitment.confirmed"


class Notifier(Protocol):
    def notify(self, event: str, payload: dict) -> None: ...


class LoggingNotifier:
    """Fallback when no webhook is configured"""

    def notify(self, event: str, payload: dict) -> None:
        logger.info(f"📣 {event}: {payload}")


class WebhookNotifier:
    """POSTs events to the notification collaborator's webhook"""

    def __init__(self, url: str, timeout: float = NOTIFICATION_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def notify(self, event: str, payload: dict) -> None:
        body = {
            "event": event,
            "payload": payload,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        response = httpx.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()


class NotificationDispatcher:
    """Fire-and-forget wrapper around a notifier"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def dispatch(
        self, event: str, payload: dict, background_tasks: Optional[BackgroundTasks] = None
    ) -> None:
        """Queue delivery after the response when a request is in flight, else deliver inline"""
        if background_tasks is not None:
            background_tasks.add_task(self.deliver, event, payload)
            return
        self.deliver(event, payload)

    def deliver(self, event: str, payload: dict) -> None:
        try:
            logger.info(f"📧 Sending {event} notification for commitment {payload.get('id')}")
            self.notifier.notify(event, payload)
            logger.info(f"✅ {event} notification delivered for commitment {payload.get('id')}")
        except Exception as e:
            logger.error(f"❌ Failed to deliver {event} notification for commitment {payload.get('id')}: {e}")


def commitment_payload(commitment, **extra) -> dict:
    """JSON-friendly snapshot of a commitment, taken before the session goes away"""
    payload = {
        "id": commitment.id,
        "resource_id": commitment.resource_id,
        "start": commitment.start_at.isoformat(),
        "end": commitment.end_at.isoformat(),
        "status": commitment.status,
        "title": commitment.title,
        "counterpart_name": commitment.counterpart_name,
        "counterpart_email": commitment.counterpart_email,
    }
    payload.update(extra)
    return payload


_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher built from configuration"""
    global _dispatcher

    if _dispatcher is None:
        if NOTIFICATION_WEBHOOK_URL:
            logger.info("🔄 Notifications will be delivered to the configured webhook")
            notifier = WebhookNotifier(NOTIFICATION_WEBHOOK_URL)
        else:
            logger.warning("⚠️ NOTIFICATION_WEBHOOK_URL not set - notifications are only logged")
            notifier = LoggingNotifier()
        _dispatcher = NotificationDispatcher(notifier)

    return _dispatcher
