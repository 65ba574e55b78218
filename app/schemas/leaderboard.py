"""
Pydantic schemas for leaderboards
"""
from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class LeaderboardRow(BaseModel):
    rank: int
    entry_id: UUID
    user_id: UUID
    username: Optional[str] = None
    score: int
    time_spent: int
    completed_at: datetime


class LeaderboardOut(BaseModel):
    quiz_id: UUID
    quiz_title: str
    total_participants: int
    entries: List[LeaderboardRow]


class UserRank(BaseModel):
    quiz_id: UUID
    rank: int
    total_participants: int
    score: int
    time_spent: int
