"""
Pydantic schemas for user profiles, performance and admin management
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from uuid import UUID
from datetime import datetime


class UserOut(BaseModel):
    id: UUID
    username: str
    email: str
    name: str
    avatar_url: Optional[str] = None
    role: str
    premium_until: Optional[datetime] = None
    is_blocked: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=512)


class AdminUserUpdate(BaseModel):
    """Fields only an admin may change; premium_until null revokes premium"""
    role: Optional[str] = Field(None, pattern="^(user|admin)$")
    premium_until: Optional[datetime] = None
    is_blocked: Optional[bool] = None


class QuizPerformance(BaseModel):
    quiz_id: UUID
    quiz_title: str
    attempts: int
    best_score: int
    avg_score: float
    rank: Optional[int] = None


class UserPerformance(BaseModel):
    """Attempt statistics for the current user"""
    user_id: UUID
    total_attempts: int
    finished_attempts: int
    late_attempts: int
    abandoned_attempts: int
    in_progress_attempts: int
    overall_avg_score: float
    total_time_spent: int
    quizzes: List[QuizPerformance]
    weak_quizzes: List[str]


class PlatformStats(BaseModel):
    """Admin dashboard counters"""
    total_users: int
    blocked_users: int
    premium_users: int
    total_quizzes: int
    premium_quizzes: int
    hidden_quizzes: int
    attempts_by_status: Dict[str, int]
    avg_score: float
    leaderboard_entries: int
    unread_notifications: int


class SweepResponse(BaseModel):
    expired: int
