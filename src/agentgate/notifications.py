"""Notification sinks and the fire-and-forget dispatch helper."""

from __future__ import annotations

import logging

from .interfaces import NotificationSink
from .models import NotificationEvent

logger = logging.getLogger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Writes events to the log. Default sink when no mailer is wired in."""

    def notify(self, user_id: str, event: NotificationEvent) -> None:
        logger.info(
            "Notify %s: %s for request %s",
            user_id,
            event.kind,
            event.request_id,
            extra={"event_agent_id": event.agent_id},
        )


class NullNotificationSink(NotificationSink):
    def notify(self, user_id: str, event: NotificationEvent) -> None:
        return None


def dispatch(sink: NotificationSink, user_id: str, event: NotificationEvent) -> bool:
    """Deliver an event, logging and absorbing any sink failure.

    Returns:
        True if the sink accepted the event.
    """
    try:
        sink.notify(user_id, event)
    except Exception as e:
        logger.warning(
            "Notification %s for request %s to %s failed: %s",
            event.kind,
            event.request_id,
            user_id,
            e,
        )
        return False
    return True


__all__ = [
    "LoggingNotificationSink",
    "NullNotificationSink",
    "dispatch",
]
