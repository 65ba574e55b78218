"""
WebSocket connection manager for notification push

Connections are kept per user in this worker only. The database inbox is
the source of truth; a push that fails is simply dropped.
"""
import logging
from typing import Dict, Set, Any
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open notification sockets per user"""

    def __init__(self):
        self.connections: Dict[UUID, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: UUID) -> None:
        await websocket.accept()
        self.connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"Notification socket opened for user {user_id} ({len(self.connections[user_id])} open)")

    def disconnect(self, websocket: WebSocket, user_id: UUID) -> None:
        sockets = self.connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.connections[user_id]
        logger.info(f"Notification socket closed for user {user_id}")

    def is_connected(self, user_id: UUID) -> bool:
        return bool(self.connections.get(user_id))

    async def send_to_user(self, user_id: UUID, message: Dict[str, Any]) -> int:
        """
        Push a JSON message to every socket of a user

        Returns:
            Number of sockets the message reached
        """
        delivered = 0
        for websocket in list(self.connections.get(user_id, ())):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dead socket for user {user_id}: {str(e)}")
                self.disconnect(websocket, user_id)
        return delivered

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Push a message to every connected user"""
        delivered = 0
        for user_id in list(self.connections.keys()):
            delivered += await self.send_to_user(user_id, message)
        return delivered


# Global instance
connection_manager = ConnectionManager()
