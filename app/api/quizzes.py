"""
Quiz catalog, authoring and import API endpoints
"""
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session
from uuid import UUID, uuid4
from typing import List, Optional
import aiofiles
import logging
import os
import tempfile

from app.api.dependencies import get_current_user, get_optional_user
from app.database import get_db
from app.exceptions import InvalidError
from app.models import User
from app.schemas.quiz import (
    QuestionCreate,
    QuestionManage,
    QuestionUpdate,
    QuizCreate,
    QuizDetail,
    QuizImportResponse,
    QuizSummary,
    QuizUpdate,
)
from app.services.gemini_service import gemini_service
from app.services.quiz_service import quiz_service

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])
logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md")


@router.get("/", response_model=List[QuizSummary])
async def list_quizzes(
    search: Optional[str] = None,
    is_premium: Optional[bool] = None,
    owner_id: Optional[UUID] = None,
    accessible_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Browse the quiz catalog

    - Hidden quizzes are only listed for their owner and admins
    - accessible_only drops premium quizzes the caller cannot take
    """
    return quiz_service.list_quizzes(
        db,
        user,
        search=search,
        is_premium=is_premium,
        owner_id=owner_id,
        accessible_only=accessible_only,
        skip=skip,
        limit=limit,
    )


@router.post("/", response_model=QuizDetail, status_code=201)
async def create_quiz(
    request: QuizCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    quiz = quiz_service.create_quiz(db, user, request)
    return quiz_service.get_quiz_detail(db, quiz.id, user)


@router.post("/import", response_model=QuizImportResponse, status_code=201)
async def import_quiz(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a quiz from a document using Gemini

    - .pdf files are uploaded to the Gemini File API
    - .txt and .md files are sent as text
    - Questions without exactly one matching correct option are skipped
    """
    quiz_service.ensure_can_author(user)

    filename = file.filename or "upload"
    extension = os.path.splitext(filename)[1].lower()
    content = await file.read()

    if extension == ".pdf":
        temp_path = os.path.join(tempfile.gettempdir(), f"quiz-import-{uuid4()}.pdf")
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)

            logger.info(f"Importing quiz from PDF: {filename}")
            extracted = gemini_service.extract_from_pdf(temp_path, display_name=filename)
        finally:
            # Cleanup temp file
            if os.path.exists(temp_path):
                os.remove(temp_path)
    elif extension in TEXT_EXTENSIONS:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidError("Text files must be UTF-8 encoded", error="unsupported_file")

        logger.info(f"Importing quiz from text: {filename}")
        extracted = gemini_service.extract_from_text(text)
    else:
        raise InvalidError("Only .pdf, .txt and .md files are supported", error="unsupported_file")

    quiz = quiz_service.import_quiz(db, user, title or os.path.splitext(filename)[0], extracted)

    return QuizImportResponse(
        quiz_id=quiz.id,
        title=quiz.title,
        total_questions=quiz.total_questions,
        message="Quiz imported successfully",
    )


@router.get("/{quiz_id}", response_model=QuizDetail)
async def get_quiz(
    quiz_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Quiz metadata; owners and admins also get questions with answers"""
    return quiz_service.get_quiz_detail(db, quiz_id, user)


@router.patch("/{quiz_id}", response_model=QuizSummary)
async def update_quiz(
    quiz_id: UUID,
    request: QuizUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return quiz_service.update_quiz(db, user, quiz_id, request)


@router.delete("/{quiz_id}", status_code=204)
async def delete_quiz(
    quiz_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    quiz_service.delete_quiz(db, user, quiz_id)


@router.post("/{quiz_id}/questions", response_model=QuestionManage, status_code=201)
async def add_question(
    quiz_id: UUID,
    request: QuestionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return quiz_service.add_question(db, user, quiz_id, request)


@router.put("/questions/{question_id}", response_model=QuestionManage)
async def update_question(
    question_id: UUID,
    request: QuestionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return quiz_service.update_question(db, user, question_id, request)


@router.delete("/questions/{question_id}", status_code=204)
async def delete_question(
    question_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    quiz_service.delete_question(db, user, question_id)
