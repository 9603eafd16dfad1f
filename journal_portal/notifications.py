"""Notification collaborator used for reset links and review outcomes."""

from __future__ import annotations

import logging
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class Notifier(Protocol):
    """Delivers a templated message to a single recipient."""

    def send(
        self,
        recipient_email: str,
        recipient_name: str,
        subject: str,
        context_id: str,
    ) -> None:
        """Queue the notification for delivery."""


class LoggingNotifier:
    """Notifier that only records notifications in the application log.

    The context id is left out of the log line since it may be a reset token.
    """

    def send(
        self,
        recipient_email: str,
        recipient_name: str,
        subject: str,
        context_id: str,
    ) -> None:
        LOGGER.info(
            "notification_queued: subject=%s recipient=%s name=%s",
            subject,
            recipient_email,
            recipient_name,
        )
