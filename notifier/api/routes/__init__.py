from __future__ import annotations

from notifier.api.routes.health import router as health_router
from notifier.api.routes.notifications import router as notifications_router

__all__ = ["health_router", "notifications_router"]
