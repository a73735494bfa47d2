"""Notification sending gated by the admission controller."""

from __future__ import annotations

import logging

from notifier.adapters.sender.base import AbstractNotificationSender
from notifier.schemas.notification import NotificationRequest, NotificationResponse
from notifier.services.admission_controller import (
    AdmissionController,
    AdmissionDecision,
    hash_recipient,
)

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends notifications that pass the rate limits.

    The sender is only invoked after admission is granted; a denied request
    never reaches it.
    """

    def __init__(
        self,
        *,
        admission: AdmissionController,
        sender: AbstractNotificationSender,
    ) -> None:
        self._admission = admission
        self._sender = sender

    def send(self, request: NotificationRequest) -> tuple[NotificationResponse, AdmissionDecision]:
        """Admit and deliver a notification.

        Args:
            request: Notification to send.

        Returns:
            Tuple of (response for the caller, admission decision with budget
            metadata for response headers).

        Raises:
            RateLimitStoreError: Propagated from the admission check.
        """
        decision = self._admission.evaluate(request.type, request.recipient)

        if not decision.allowed:
            logger.warning(
                "notification.rate_limited",
                extra={
                    "notification_type": request.type,
                    "recipient_hash": hash_recipient(request.recipient),
                    "retry_after_s": decision.retry_after_seconds,
                },
            )
            response = NotificationResponse(
                success=False,
                message=(
                    f"Rate limit exceeded for '{request.type}' notification "
                    f"to {request.recipient}"
                ),
            )
            return response, decision

        self._sender.send(request.type, request.recipient, request.message)
        logger.info(
            "notification.sent",
            extra={
                "notification_type": request.type,
                "recipient_hash": hash_recipient(request.recipient),
            },
        )
        response = NotificationResponse(
            success=True,
            message=f"Notification '{request.type}' sent to {request.recipient}",
        )
        return response, decision
