"""Notification model and recipient type definitions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, TypedDict, Union
from uuid import UUID


RecipientType = Literal["user", "admin"]


@dataclass(frozen=True)
class UserRecipient:
    """A single shopper."""

    user_id: UUID

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"

    @property
    def recipient_type(self) -> RecipientType:
        return "user"


@dataclass(frozen=True)
class AdminRecipient:
    """The store administrator group."""

    @property
    def key(self) -> str:
        return "admin"

    @property
    def recipient_type(self) -> RecipientType:
        return "admin"


Recipient = Union[UserRecipient, AdminRecipient]

ADMIN = AdminRecipient()


class Notification(TypedDict):
    """notifications table row representation."""

    id: UUID
    recipient_type: RecipientType
    user_id: UUID | None
    order_id: UUID
    message: str
    status_label: str | None
    extra: dict[str, Any]
    read: bool
    created_at: datetime
