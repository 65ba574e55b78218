"""
Pydantic schemas for test attempt requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.schemas.quiz import QuestionPublic


class AnswerItem(BaseModel):
    """One selection; selected_answer_id null clears the question"""
    question_id: UUID
    selected_answer_id: Optional[UUID] = None
    client_seq: Optional[int] = Field(None, ge=0, description="Client-side ordering for autosaves")


class AutosaveRequest(BaseModel):
    """Request schema for saving draft answers"""
    answers: List[AnswerItem] = Field(default_factory=list)


class SubmitRequest(BaseModel):
    """Request schema for submitting an attempt; merged over saved drafts"""
    answers: List[AnswerItem] = Field(default_factory=list)


class DraftAnswerOut(BaseModel):
    question_id: UUID
    selected_answer_id: Optional[UUID] = None


class AttemptQuizInfo(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None


class AttemptStartResponse(BaseModel):
    """Questions to play plus any saved drafts when resuming"""
    attempt_id: UUID
    status: str
    resumed: bool
    quiz: AttemptQuizInfo
    questions: List[QuestionPublic]
    total_questions: int
    started_at: datetime
    deadline_at: Optional[datetime] = None
    remaining_seconds: Optional[int] = None
    draft_answers: List[DraftAnswerOut]


class AutosaveResponse(BaseModel):
    attempt_id: UUID
    status: str
    saved: bool
    draft_answers: List[DraftAnswerOut]


class AttemptResult(BaseModel):
    """Response after submitting or abandoning an attempt"""
    id: UUID
    quiz_id: UUID
    status: str
    score: Optional[int] = None
    total_questions: int
    correct_answers: int
    completion_time: Optional[int] = None
    started_at: datetime
    deadline_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InProgressAttempt(BaseModel):
    attempt_id: UUID
    quiz_id: UUID
    quiz_title: str
    started_at: datetime
    deadline_at: Optional[datetime] = None
    answered: int
    total_questions: int
    progress: float = Field(..., description="Answered fraction, 0 to 1")


class AttemptHistoryItem(BaseModel):
    attempt_id: UUID
    quiz_id: UUID
    quiz_title: str
    status: str
    score: Optional[int] = None
    total_questions: int
    correct_answers: int
    completion_time: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class GradedAnswer(BaseModel):
    question_id: UUID
    question: Optional[str] = None
    explanation: Optional[str] = None
    selected_answer_id: Optional[UUID] = None
    selected_answer: Optional[str] = None
    correct_answer_id: Optional[UUID] = None
    correct_answer: Optional[str] = None
    is_correct: bool


class AttemptDetails(BaseModel):
    """Review of one attempt; answers are empty until it is finished"""
    attempt_id: UUID
    quiz_id: UUID
    quiz_title: Optional[str] = None
    status: str
    score: Optional[int] = None
    total_questions: int
    correct_answers: int
    incorrect_answers: Optional[int] = None
    completion_time: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    answers: List[GradedAnswer]
