"""Sender that records deliveries in the application log."""

from __future__ import annotations

import logging

from notifier.adapters.sender.base import AbstractNotificationSender
from notifier.services.admission_controller import hash_recipient

logger = logging.getLogger(__name__)


class LoggingNotificationSender(AbstractNotificationSender):
    """Delivery stand-in that logs instead of contacting a gateway."""

    def send(self, notification_type: str, recipient: str, message: str) -> None:
        logger.info(
            "notification.delivered",
            extra={
                "notification_type": notification_type,
                "recipient_hash": hash_recipient(recipient),
                "recipient": recipient,
                "notification_message": message,
                "message_chars": len(message),
            },
        )
