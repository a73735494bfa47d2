from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from notifier.core.config import Settings
from notifier.core.rate_limit import (
    build_rate_limit_headers,
    get_app_settings,
    get_notification_service,
)
from notifier.schemas.notification import NotificationRequest, NotificationResponse
from notifier.services.notification_service import NotificationService

router = APIRouter(tags=["Notifications"])


@router.post(
    "/notifications",
    response_model=NotificationResponse,
    responses={
        status.HTTP_429_TOO_MANY_REQUESTS: {
            "model": NotificationResponse,
            "description": "Rate limit exceeded for this type and recipient.",
        },
    },
)
def send_notification(
    request: NotificationRequest,
    service: Annotated[NotificationService, Depends(get_notification_service)],
    app_settings: Annotated[Settings, Depends(get_app_settings)],
) -> NotificationResponse | JSONResponse:
    """Send a notification if its type/recipient budget allows it.

    Declared sync so FastAPI runs it in its thread pool; concurrent requests
    for the same recipient are serialized by the admission controller.

    Args:
        request: Notification type, recipient and message.
        service: Notification service (injected).
        app_settings: Settings the app was created with (injected).

    Returns:
        NotificationResponse with 200 when sent, or a 429 JSON response with
        the same shape when the rate limit is exceeded.
    """
    response, decision = service.send(request)
    if response.success:
        return response

    headers = build_rate_limit_headers(decision) if app_settings.app.rate_limit_include_headers else None
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=response.model_dump(),
        headers=headers,
    )
