"""
Test attempt API endpoints - start, autosave, submit, abandon, review
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional
import logging

from app.api.dependencies import get_current_user
from app.database import get_db
from app.models import User
from app.schemas.attempt import (
    AttemptDetails,
    AttemptHistoryItem,
    AttemptResult,
    AttemptStartResponse,
    AutosaveRequest,
    AutosaveResponse,
    InProgressAttempt,
    SubmitRequest,
)
from app.services.attempt_service import attempt_service
from app.services.notification_service import notification_service

router = APIRouter(prefix="/api/attempts", tags=["attempts"])
logger = logging.getLogger(__name__)


@router.post("/start/{quiz_id}", response_model=AttemptStartResponse)
async def start_attempt(
    quiz_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Start a quiz, or resume the in-progress attempt for it

    - 404 quiz_not_found for missing or hidden quizzes
    - 402 premium_required for premium quizzes without entitlement
    - Resumed attempts come back with their saved draft answers
    """
    return attempt_service.start_attempt(db, user, quiz_id)


@router.put("/{attempt_id}/draft", response_model=AutosaveResponse)
async def autosave(
    attempt_id: UUID,
    request: AutosaveRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Save draft answers; a finished attempt answers with saved=false"""
    return attempt_service.autosave(db, user, attempt_id, request.answers)


@router.post("/{attempt_id}/submit", response_model=AttemptResult)
async def submit_attempt(
    attempt_id: UUID,
    request: SubmitRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Grade and finish an attempt

    - Submitted answers are merged over the saved drafts
    - Past the deadline the attempt is stored as late, still scored
    - 409 attempt_already_finished if it is no longer in progress
    """
    attempt, notification = attempt_service.submit(db, user, attempt_id, request.answers)

    if notification is not None:
        await notification_service.push(notification)

    return attempt


@router.post("/{attempt_id}/abandon", response_model=AttemptResult)
async def abandon_attempt(
    attempt_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return attempt_service.abandon(db, user, attempt_id)


@router.get("/in-progress", response_model=List[InProgressAttempt])
async def list_in_progress(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return attempt_service.list_in_progress(db, user)


@router.get("/history", response_model=List[AttemptHistoryItem])
async def attempt_history(
    quiz_id: Optional[UUID] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return attempt_service.get_history(db, user, quiz_id)


@router.get("/{attempt_id}", response_model=AttemptDetails)
async def get_attempt(
    attempt_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return attempt_service.get_attempt_details(db, user, attempt_id)
