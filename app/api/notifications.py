"""
Notification inbox and realtime push endpoints
"""
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from app.api.dependencies import get_current_user
from app.database import SessionLocal, get_db
from app.exceptions import QuizHubError
from app.models import User
from app.realtime.connection_manager import connection_manager
from app.schemas.notification import (
    MarkAllReadResponse,
    NotificationList,
    NotificationOut,
    UnreadCount,
)
from app.services.auth_service import auth_service
from app.services.notification_service import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications"])
logger = logging.getLogger(__name__)


@router.get("/", response_model=NotificationList)
async def list_notifications(
    unread_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    items, total = notification_service.list_for_user(db, user, unread_only, skip, limit)
    return NotificationList(
        items=items,
        total=total,
        unread=notification_service.unread_count(db, user),
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UnreadCount(unread=notification_service.unread_count(db, user))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return MarkAllReadResponse(updated=notification_service.mark_all_read(db, user))


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return notification_service.mark_read(db, user, notification_id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service.delete(db, user, notification_id)


@ws_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: str = Query(...)):
    """
    Realtime notification push

    The token is the regular access token; the connection is closed with
    1008 when it is rejected. Incoming messages are ignored apart from
    keeping the socket alive.
    """
    db = SessionLocal()
    try:
        user = auth_service.user_from_token(db, token)
        user_id = user.id
    except QuizHubError as e:
        logger.info(f"Rejected notification socket: {e.error}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await connection_manager.connect(websocket, user_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(websocket, user_id)
