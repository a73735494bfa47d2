"""Rate limiting wiring for the HTTP layer.

This module builds the admission components from settings and exposes them
to routes through FastAPI dependencies.

Design goals:
- No module-level singletons: the app factory builds the components once and
  keeps them on ``app.state``.
- Swap-friendly: the counter store sits behind an abstract interface.
- Optional background purge of expired counters, cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import Request

from notifier.adapters.rate_limit.base import AbstractRateLimitStore
from notifier.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from notifier.adapters.sender import AbstractNotificationSender, LoggingNotificationSender
from notifier.core.config import AppSettings, Settings
from notifier.core.policy import PolicyTable
from notifier.services.admission_controller import AdmissionController, AdmissionDecision
from notifier.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def build_notification_service(
    app_settings: AppSettings,
    *,
    store: AbstractRateLimitStore | None = None,
    sender: AbstractNotificationSender | None = None,
) -> NotificationService:
    """Assemble the notification service from settings.

    Args:
        app_settings: Application settings holding the rate limit rules.
        store: Optional counter store (defaults to a fresh in-memory store).
        sender: Optional delivery adapter (defaults to the logging sender).

    Returns:
        NotificationService wired to an AdmissionController.

    Raises:
        ValidationAppError: If a configured rule is invalid.
    """

    policies = PolicyTable.from_rules(app_settings.rate_limits)
    if store is None:
        store = InMemoryRateLimitStore(max_entries=app_settings.rate_limit_max_entries)

    logger.info(
        "rate_limit.configured",
        extra={
            "policies": {
                name: {"limit": entry.limit, "period_s": entry.period_seconds}
                for name, entry in policies.items()
            },
            "max_entries": app_settings.rate_limit_max_entries,
        },
    )

    admission = AdmissionController(policies=policies, store=store)
    return NotificationService(
        admission=admission,
        sender=sender or LoggingNotificationSender(),
    )


def get_notification_service(request: Request) -> NotificationService:
    """FastAPI dependency returning the app-wide notification service."""
    return request.app.state.notification_service


def get_app_settings(request: Request) -> Settings:
    """FastAPI dependency returning the settings the app was created with."""
    return request.app.state.settings


def build_rate_limit_headers(decision: AdmissionDecision) -> dict[str, str]:
    """Build Retry-After and X-RateLimit-* headers for a denied decision."""

    headers: dict[str, str] = {}
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    if decision.limit is not None:
        headers["X-RateLimit-Limit"] = str(decision.limit)
    if decision.remaining is not None:
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
    return headers


async def run_expiry_sweep(store: AbstractRateLimitStore, interval_seconds: float) -> None:
    """Purge expired counters every ``interval_seconds`` until cancelled."""

    logger.info("rate_limit.sweep_started", extra={"interval_s": interval_seconds})
    while True:
        await asyncio.sleep(interval_seconds)
        # Purging takes the table lock; keep it off the event loop.
        await asyncio.to_thread(store.purge_expired)
