"""
Leaderboard API endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional

from app.api.dependencies import get_current_user, get_optional_user
from app.database import get_db
from app.exceptions import NotFoundError
from app.models import User
from app.schemas.leaderboard import LeaderboardOut, UserRank
from app.services.leaderboard_service import leaderboard_service
from app.services.quiz_service import quiz_service

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.get("/{quiz_id}", response_model=LeaderboardOut)
async def get_leaderboard(
    quiz_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=200),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Best result per user: score descending, then fastest"""
    quiz_service.get_visible_quiz(db, quiz_id, user)
    return leaderboard_service.get_quiz_leaderboard(db, quiz_id, limit)


@router.get("/{quiz_id}/me", response_model=UserRank)
async def get_my_rank(
    quiz_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    quiz_service.get_visible_quiz(db, quiz_id, user)
    rank = leaderboard_service.get_user_rank(db, quiz_id, user.id)
    if rank is None:
        raise NotFoundError("You have no finished attempt on this quiz", error="not_ranked")
    return rank
