"""Notification delivery adapters."""

from notifier.adapters.sender.base import AbstractNotificationSender
from notifier.adapters.sender.logging_sender import LoggingNotificationSender

__all__ = [
    "AbstractNotificationSender",
    "LoggingNotificationSender",
]
