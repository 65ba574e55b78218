"""
Notification model - per-user inbox
"""
from sqlalchemy import Column, String, Text, Boolean, TIMESTAMP, ForeignKey, Uuid
import uuid

from app.utils.timeutils import utcnow
from app.database import Base, UniversalJSON


class Notification(Base):
    """
    Notifications table
    """
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(30), nullable=False, default="system")  # system, quiz, attempt, broadcast
    data = Column(UniversalJSON)  # e.g. {"quiz_id": ..., "attempt_id": ...}
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
