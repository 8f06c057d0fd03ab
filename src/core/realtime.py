"""In-process registry of live WebSocket connections per notification recipient."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from fastapi.encoders import jsonable_encoder

if TYPE_CHECKING:
    from fastapi import WebSocket

    from src.models.notification import Recipient

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks which recipients are reachable right now.

    A recipient may hold several sockets (multiple tabs, several admins);
    membership of at least one socket means "is anyone home".
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)

    def connect(self, recipient: Recipient, websocket: WebSocket) -> None:
        """Register an accepted socket for a recipient."""
        self._rooms[recipient.key].add(websocket)
        logger.info("Recipient %s connected (%d sockets)", recipient.key, len(self._rooms[recipient.key]))

    def disconnect(self, recipient: Recipient, websocket: WebSocket) -> None:
        """Forget a socket; empty rooms are removed."""
        room = self._rooms.get(recipient.key)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self._rooms[recipient.key]
        logger.info("Recipient %s disconnected", recipient.key)

    def is_reachable(self, recipient: Recipient) -> bool:
        return bool(self._rooms.get(recipient.key))

    async def push_to(self, recipient: Recipient, event: str, payload: dict[str, Any]) -> int:
        """Send an event to every socket of a recipient without awaiting acknowledgement.

        Sockets that fail to send are dropped from the room.

        Returns:
            int: Number of sockets the event was written to.
        """
        message = {"event": event, "data": jsonable_encoder(payload)}
        delivered = 0
        for websocket in list(self._rooms.get(recipient.key, ())):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping dead socket for %s: %s", recipient.key, str(e))
                self.disconnect(recipient, websocket)
        return delivered

    def get_stats(self) -> dict:
        """Get connection statistics for monitoring."""
        return {
            "rooms": len(self._rooms),
            "sockets": sum(len(room) for room in self._rooms.values()),
        }


# Global singleton instance
_connection_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get or create the global connection manager instance."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager
