"""
Pydantic schemas for notifications
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime


class NotificationOut(BaseModel):
    id: UUID
    title: str
    content: str
    type: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    items: List[NotificationOut]
    total: int
    unread: int


class UnreadCount(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


class NotificationSend(BaseModel):
    """Admin message to one user"""
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    type: str = Field("system", pattern="^(system|quiz)$")
    data: Optional[Dict[str, Any]] = None


class NotificationBroadcast(BaseModel):
    """Admin message to every active user"""
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None


class BroadcastResponse(BaseModel):
    recipients: int
