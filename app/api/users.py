"""
User profile and performance endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user
from app.database import get_db
from app.models import User
from app.schemas.user import ProfileUpdate, UserOut, UserPerformance
from app.services.analytics_service import analytics_service
from app.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserOut)
async def update_profile(
    request: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return user_service.update_profile(db, user, request.model_dump(exclude_unset=True))


@router.get("/me/performance", response_model=UserPerformance)
async def get_performance(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Attempt statistics for the current user

    Returns:
    - Finished, late, abandoned and in-progress counts
    - Average score over finished attempts
    - Per-quiz best and average score with leaderboard rank
    """
    return analytics_service.get_user_performance(db, user)
