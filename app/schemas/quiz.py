"""
Pydantic schemas for quiz catalog and authoring requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class OptionCreate(BaseModel):
    """Answer option as written by an author"""
    content: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """Request schema for adding a question"""
    content: str = Field(..., min_length=1)
    type: str = Field("mcq", pattern="^(mcq|true_false)$", description="Question type")
    image_url: Optional[str] = None
    explanation: Optional[str] = None
    options: List[OptionCreate] = Field(..., min_length=2, max_length=10)


class QuestionUpdate(BaseModel):
    """Request schema for editing a question; options replace the old set"""
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, pattern="^(mcq|true_false)$")
    image_url: Optional[str] = None
    explanation: Optional[str] = None
    options: Optional[List[OptionCreate]] = Field(None, min_length=2, max_length=10)


class QuizCreate(BaseModel):
    """Request schema for quiz creation"""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(None, ge=1, le=600, description="Minutes, empty for unlimited")
    is_premium: bool = False
    is_hidden: bool = False
    questions: List[QuestionCreate] = Field(default_factory=list)


class QuizUpdate(BaseModel):
    """Request schema for quiz metadata updates"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(None, ge=1, le=600)
    is_premium: Optional[bool] = None
    is_hidden: Optional[bool] = None


class OptionPublic(BaseModel):
    """Answer option as shown to players (no correctness)"""
    id: UUID
    content: str

    class Config:
        from_attributes = True


class OptionManage(OptionPublic):
    """Answer option as shown to the quiz owner"""
    is_correct: bool


class QuestionPublic(BaseModel):
    """Question as shown to players"""
    id: UUID
    position: int
    content: str
    type: str
    image_url: Optional[str] = None
    options: List[OptionPublic]

    class Config:
        from_attributes = True


class QuestionManage(QuestionPublic):
    """Question as shown to the quiz owner"""
    explanation: Optional[str] = None
    options: List[OptionManage]


class QuizSummary(BaseModel):
    """Quiz catalog entry"""
    id: UUID
    owner_id: UUID
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None
    is_premium: bool
    is_hidden: bool
    total_questions: int
    total_attempts: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuizDetail(QuizSummary):
    """Quiz with questions; correctness only for owners and admins"""
    questions: List[QuestionManage] = Field(default_factory=list)


class QuizImportResponse(BaseModel):
    """Response after importing a quiz from a document"""
    quiz_id: UUID
    title: str
    total_questions: int
    message: str
