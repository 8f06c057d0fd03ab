"""Notification Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.common import Pagination


class NotificationResponse(BaseModel):
    """Schema for a stored notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Notification ID")
    recipient_type: Literal["user", "admin"] = Field(description="Recipient kind")
    order_id: UUID = Field(description="Order the event is about")
    message: str = Field(description="Human-readable message")
    status_label: str | None = Field(default=None, description="Short status text")
    extra: dict[str, Any] = Field(default_factory=dict, description="Additional event fields")
    read: bool = Field(default=False, description="Whether the recipient has read it")
    created_at: datetime = Field(description="Creation timestamp")


class NotificationListResponse(BaseModel):
    """Paginated notification history."""

    items: list[NotificationResponse]
    pagination: Pagination


class MarkAllReadResponse(BaseModel):
    """Result of marking every notification as read."""

    message: str
    modified_count: int
