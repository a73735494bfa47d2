"""Application factory for FastAPI app.

Centralizes app construction (settings, rate limiting components, middleware,
handlers, routers) so tests can build isolated apps with their own counters.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI

from notifier.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from notifier.api.routes import health_router, notifications_router
from notifier.core.config import Settings, settings as default_settings
from notifier.core.exception_handlers import setup_exception_handlers
from notifier.core.logging import configure_logging
from notifier.core.middleware import request_id_middleware
from notifier.core.rate_limit import build_notification_service, run_expiry_sweep


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Optional settings; defaults to the environment-loaded ones.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ValidationAppError: If the configured rate limits are invalid.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    store = InMemoryRateLimitStore(max_entries=cfg.app.rate_limit_max_entries)
    notification_service = build_notification_service(cfg.app, store=store)
    sweep_interval = cfg.app.rate_limit_sweep_interval_seconds

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper: asyncio.Task[None] | None = None
        if sweep_interval > 0:
            sweeper = asyncio.create_task(run_expiry_sweep(store, sweep_interval))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

    app = FastAPI(
        title="Rate-Limited Notification Service",
        description=(
            "Envia notificações por tipo e destinatário, limitando a quantidade "
            "de envios por janela de tempo (ex.: status 2/min, news 1/dia, "
            "marketing 3/hora). Retorna 429 quando o limite é excedido."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.rate_limit_store = store
    app.state.notification_service = notification_service

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(notifications_router, prefix="/v1")
    app.include_router(health_router)

    return app
