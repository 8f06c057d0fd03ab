"""Notification dispatch with durable history, live push and offline mailbox."""

import json
import logging
import math
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from redis.asyncio import Redis
from redis.exceptions import RedisError
from supabase import Client

from src.api.middleware.error_handler import NotFoundError
from src.core.config import get_settings
from src.core.realtime import ConnectionManager, get_connection_manager
from src.core.redis import get_redis
from src.core.supabase import get_supabase_client
from src.models.notification import Recipient

logger = logging.getLogger(__name__)

MAILBOX_KEY_PREFIX = "missed_notifications"

USER_EVENT = "order_status_updated"
ADMIN_EVENT = "admin_notification"


def mailbox_key(recipient: Recipient) -> str:
    """Redis list holding events a recipient missed while offline."""
    return f"{MAILBOX_KEY_PREFIX}:{recipient.key}"


def event_name(recipient: Recipient) -> str:
    return ADMIN_EVENT if recipient.recipient_type == "admin" else USER_EVENT


class NotificationService:
    """Delivers order events to shoppers and the admin group.

    The notifications table is the source of truth: every event is stored
    before any delivery attempt. A connected recipient gets the event pushed
    over its WebSocket; otherwise it is appended to a short-lived Redis
    mailbox that is replayed when the recipient reconnects.
    """

    def __init__(
        self,
        supabase_client: Client | None = None,
        redis_client: Redis | None = None,
        connections: ConnectionManager | None = None,
    ) -> None:
        """Initialize notification service.

        Args:
            supabase_client: Optional Supabase client for testing.
            redis_client: Optional Redis client for testing.
            connections: Optional connection manager for testing.
        """
        self._supabase_client = supabase_client
        self._redis_client = redis_client
        self.connections = connections or get_connection_manager()
        self.settings = get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    @property
    def redis(self) -> Redis:
        """Get Redis client."""
        if self._redis_client is None:
            self._redis_client = get_redis()
        return self._redis_client

    async def notify(
        self,
        recipient: Recipient,
        order_id: UUID | str,
        status_label: str | None,
        message: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Persist an event and deliver it live or to the offline mailbox.

        Args:
            recipient: Shopper or admin group receiving the event.
            order_id: Order the event is about.
            status_label: Short status text shown with the message.
            message: Human-readable message.
            extra: Additional fields merged into the delivered payload.

        Returns:
            dict: The delivered payload including the stored id and created_at.
        """
        extra = jsonable_encoder(extra or {})
        row = {
            "recipient_type": recipient.recipient_type,
            "user_id": str(recipient.user_id) if recipient.recipient_type == "user" else None,
            "order_id": str(order_id),
            "message": message,
            "status_label": status_label,
            "extra": extra,
            "read": False,
        }

        result = self.supabase.table("notifications").insert(row).execute()
        saved = result.data[0]

        payload = {
            **extra,
            "id": saved["id"],
            "created_at": saved["created_at"],
            "order_id": str(order_id),
            "status_label": status_label,
            "message": message,
        }

        if self.connections.is_reachable(recipient):
            await self.connections.push_to(recipient, event_name(recipient), payload)
            logger.debug("Pushed notification %s to %s", saved["id"], recipient.key)
        else:
            await self._enqueue_missed(recipient, payload)

        return payload

    async def _enqueue_missed(self, recipient: Recipient, payload: dict[str, Any]) -> None:
        key = mailbox_key(recipient)
        try:
            await self.redis.rpush(key, json.dumps(jsonable_encoder(payload)))
            await self.redis.expire(key, self.settings.missed_notification_ttl_seconds)
            logger.info("Recipient %s offline, stored missed notification", recipient.key)
        except RedisError as e:
            # History in the notifications table still has the event.
            logger.warning("Could not queue missed notification for %s: %s", recipient.key, str(e))

    async def flush_missed(self, recipient: Recipient) -> int:
        """Replay a recipient's offline mailbox over the live channel.

        Called right after the recipient's socket is registered. The mailbox
        is read and deleted atomically so events appended afterwards stay
        queued for the next connection.

        Args:
            recipient: The recipient that just connected.

        Returns:
            int: Number of events replayed.
        """
        key = mailbox_key(recipient)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.lrange(key, 0, -1)
                pipe.delete(key)
                missed, _ = await pipe.execute()
        except RedisError as e:
            logger.warning("Could not read missed notifications for %s: %s", recipient.key, str(e))
            return 0

        event = event_name(recipient)
        for raw in missed:
            await self.connections.push_to(recipient, event, json.loads(raw))

        if missed:
            logger.info("Replayed %d missed notifications to %s", len(missed), recipient.key)
        return len(missed)

    def _scoped(self, query: Any, recipient: Recipient) -> Any:
        query = query.eq("recipient_type", recipient.recipient_type)
        if recipient.recipient_type == "user":
            query = query.eq("user_id", str(recipient.user_id))
        return query

    async def list_notifications(
        self,
        recipient: Recipient,
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """Get a page of a recipient's notification history, newest first.

        Args:
            recipient: Whose history to read.
            page: 1-based page number.
            limit: Page size.

        Returns:
            dict: items plus total, page, limit and pages.
        """
        start = (page - 1) * limit
        query = self.supabase.table("notifications").select("*", count="exact")
        response = (
            self._scoped(query, recipient)
            .order("created_at", desc=True)
            .range(start, start + limit - 1)
            .execute()
        )

        total = response.count or 0
        return {
            "items": response.data or [],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    async def mark_read(self, notification_id: UUID, recipient: Recipient) -> dict[str, Any]:
        """Mark one of the recipient's notifications as read.

        Raises:
            NotFoundError: If the notification does not belong to the recipient.
        """
        query = self.supabase.table("notifications").update({"read": True}).eq("id", str(notification_id))
        response = self._scoped(query, recipient).execute()

        if not response.data:
            raise NotFoundError("Notification not found")
        return response.data[0]

    async def mark_all_read(self, recipient: Recipient) -> int:
        """Mark every unread notification of the recipient as read.

        Returns:
            int: Number of notifications updated.
        """
        query = self.supabase.table("notifications").update({"read": True}).eq("read", False)
        response = self._scoped(query, recipient).execute()
        return len(response.data) if response.data else 0
