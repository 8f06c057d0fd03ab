"""Notification history routes and the realtime WebSocket channel."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from src.api.deps import CurrentUser, recipient_for
from src.api.middleware.auth import AuthError, authenticate
from src.core.realtime import get_connection_manager
from src.schemas.common import Pagination
from src.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from src.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Returns the caller's notification history, newest first. Admins see the shared admin inbox.",
)
async def list_notifications(
    user: CurrentUser,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Page size"),
) -> NotificationListResponse:
    """List the caller's stored notifications."""
    service = NotificationService()
    result = await service.list_notifications(recipient_for(user), page=page, limit=limit)

    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in result["items"]],
        pagination=Pagination(
            total=result["total"],
            page=result["page"],
            limit=result["limit"],
            pages=result["pages"],
        ),
    )


@router.put(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications read",
)
async def mark_all_read(user: CurrentUser) -> MarkAllReadResponse:
    service = NotificationService()
    count = await service.mark_all_read(recipient_for(user))
    return MarkAllReadResponse(message="All notifications marked as read", modified_count=count)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification read",
)
async def mark_read(notification_id: UUID, user: CurrentUser) -> NotificationResponse:
    service = NotificationService()
    notification = await service.mark_read(notification_id, recipient_for(user))
    return NotificationResponse.model_validate(notification)


@ws_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: str = "") -> None:
    """Live notification channel.

    Browsers cannot set headers on a WebSocket handshake, so the access
    token is passed as the ``token`` query parameter. After the socket is
    registered, events missed while offline are replayed, then live events
    arrive as ``{"event": ..., "data": {...}}`` messages. Anything the client
    sends is ignored.
    """
    try:
        user = authenticate(token)
    except AuthError as e:
        logger.info("Rejected notification socket: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    recipient = recipient_for(user)
    manager = get_connection_manager()

    await websocket.accept()
    manager.connect(recipient, websocket)
    try:
        await NotificationService().flush_missed(recipient)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(recipient, websocket)
