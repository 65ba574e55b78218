"""
Admin back-office endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional
import logging

from app.api.dependencies import require_admin
from app.database import get_db
from app.models import User
from app.schemas.notification import (
    BroadcastResponse,
    NotificationBroadcast,
    NotificationOut,
    NotificationSend,
)
from app.schemas.quiz import QuizSummary
from app.schemas.user import AdminUserUpdate, PlatformStats, SweepResponse, UserOut
from app.services.analytics_service import analytics_service
from app.services.attempt_service import attempt_service
from app.services.leaderboard_service import leaderboard_service
from app.services.notification_service import notification_service
from app.services.quiz_service import quiz_service
from app.services.user_service import user_service

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return analytics_service.get_platform_stats(db)


@router.get("/users", response_model=List[UserOut])
async def list_users(
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return user_service.list_users(db, search, skip, limit)


@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: UUID,
    request: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Change role, premium entitlement or blocked flag

    Premium is granted here by setting premium_until; there is no
    payment flow.
    """
    return user_service.admin_update(db, admin, user_id, request.model_dump(exclude_unset=True))


@router.post("/quizzes/{quiz_id}/toggle-hidden", response_model=QuizSummary)
async def toggle_quiz_hidden(
    quiz_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return quiz_service.set_hidden(db, quiz_id)


@router.delete("/leaderboard/{entry_id}", status_code=204)
async def delete_leaderboard_entry(
    entry_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    leaderboard_service.delete_entry(db, entry_id)


@router.post("/notifications/send", response_model=NotificationOut, status_code=201)
async def send_notification(
    request: NotificationSend,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return await notification_service.send_to_user(
        db,
        user_id=request.user_id,
        title=request.title,
        content=request.content,
        type=request.type,
        data=request.data,
    )


@router.post("/notifications/broadcast", response_model=BroadcastResponse)
async def broadcast_notification(
    request: NotificationBroadcast,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    recipients = await notification_service.broadcast(db, request.title, request.content, request.data)
    return BroadcastResponse(recipients=recipients)


@router.post("/attempts/expire", response_model=SweepResponse)
async def expire_stale_attempts(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Run the overdue-attempt sweep now"""
    expired = attempt_service.expire_stale_attempts(db)
    logger.info(f"Admin {admin.id} ran the attempt sweep: {expired} expired")
    return SweepResponse(expired=expired)
