"""Pydantic schemas for notification requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class NotificationRequest(BaseModel):
    """A notification to be sent to a single recipient."""

    type: str = Field(
        ...,
        min_length=1,
        description="Notification type (e.g., 'status', 'news', 'marketing').",
    )
    recipient: str = Field(
        ...,
        min_length=1,
        description="Recipient identifier (e.g., an email address).",
    )
    message: str = Field(
        ...,
        min_length=1,
        description="Message content delivered to the recipient.",
    )


class NotificationResponse(BaseModel):
    """Result of a send attempt."""

    success: bool = Field(
        ..., description="Whether the notification was sent."
    )
    message: str = Field(
        ..., description="Human-readable description of the outcome."
    )
