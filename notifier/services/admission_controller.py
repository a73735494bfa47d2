"""Admission decisions for outbound notifications.

Each (notification type, recipient) pair gets its own counter. A type with a
policy admits at most ``limit`` notifications per ``period``; a type without a
policy is never throttled.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from notifier.adapters.rate_limit.base import AbstractRateLimitStore
from notifier.core.policy import PolicyTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of an admission check.

    Attributes:
        allowed: Whether the notification may be sent.
        limit: Policy limit, or None for unrestricted types.
        remaining: Notifications left in the current window (None if unrestricted).
        retry_after_seconds: Seconds until the window resets when denied.
    """

    allowed: bool
    limit: int | None = None
    remaining: int | None = None
    retry_after_seconds: int | None = None


def build_counter_key(notification_type: str, recipient: str) -> str:
    return f"{notification_type}:{recipient}"


def hash_recipient(recipient: str) -> str:
    """Hash the recipient for logging without exposing addresses."""
    return hashlib.sha256(recipient.encode()).hexdigest()[:16]


class AdmissionController:
    """Approves or denies notifications against the configured policies."""

    def __init__(
        self,
        *,
        policies: PolicyTable,
        store: AbstractRateLimitStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policies = policies
        self._store = store
        self._clock = clock

    @property
    def policies(self) -> PolicyTable:
        return self._policies

    def is_allowed(self, notification_type: str, recipient: str) -> bool:
        """Return True when the notification may be sent right now.

        Admitting a notification consumes one unit of its key's budget.
        """
        return self.evaluate(notification_type, recipient).allowed

    def evaluate(self, notification_type: str, recipient: str) -> AdmissionDecision:
        """Check and consume the budget for a (type, recipient) pair.

        The read, the limit check and the increment run under the key's lock,
        so concurrent calls for the same key never admit more than ``limit``.

        Args:
            notification_type: Notification type (e.g. "status", "news").
            recipient: Recipient identifier.

        Returns:
            AdmissionDecision with the verdict and budget metadata.

        Raises:
            RateLimitStoreError: If the store cannot track the key. Never
                converted into an allowed decision.
        """
        policy = self._policies.get(notification_type)
        if policy is None:
            logger.debug(
                "admission.unrestricted",
                extra={"notification_type": notification_type},
            )
            return AdmissionDecision(allowed=True)

        key = build_counter_key(notification_type, recipient)

        with self._store.lock(key):
            count = self._store.get_or_init(key, policy.period_seconds)
            if count >= policy.limit:
                expires_at = self._store.expires_at(key)
                decision = AdmissionDecision(
                    allowed=False,
                    limit=policy.limit,
                    remaining=0,
                    retry_after_seconds=self._retry_after(expires_at),
                )
            else:
                count = self._store.increment(key)
                decision = AdmissionDecision(
                    allowed=True,
                    limit=policy.limit,
                    remaining=max(0, policy.limit - count),
                )

        log_extra = {
            "notification_type": notification_type,
            "recipient_hash": hash_recipient(recipient),
            "limit": policy.limit,
            "remaining": decision.remaining,
            "period_s": policy.period_seconds,
        }
        if decision.allowed:
            logger.info("admission.allowed", extra=log_extra)
        else:
            logger.warning(
                "admission.denied",
                extra={**log_extra, "retry_after_s": decision.retry_after_seconds},
            )
        return decision

    def _retry_after(self, expires_at: float | None) -> int:
        if expires_at is None:
            return 0
        return max(0, int(math.ceil(expires_at - self._clock())))
