"""
Quiz model - authored quiz metadata and denormalized counters
"""
from sqlalchemy import Column, String, Text, Integer, Boolean, TIMESTAMP, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid

from app.utils.timeutils import utcnow
from app.database import Base


class Quiz(Base):
    """
    Quizzes table - owns its questions; counters are maintained with
    atomic SQL increments, never read-modify-write
    """
    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    time_limit = Column(Integer, nullable=True)  # minutes, None = unlimited
    is_premium = Column(Boolean, nullable=False, default=False)
    is_hidden = Column(Boolean, nullable=False, default=False)
    total_questions = Column(Integer, nullable=False, default=0)
    total_attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )
    owner = relationship("User")

    def is_visible_to(self, user) -> bool:
        if not self.is_hidden:
            return True
        return user is not None and (user.is_admin or user.id == self.owner_id)

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title})>"
