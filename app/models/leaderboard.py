"""
LeaderboardEntry model - best finished attempt per user per quiz
"""
from sqlalchemy import Column, Integer, TIMESTAMP, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid

from app.utils.timeutils import utcnow
from app.database import Base


class LeaderboardEntry(Base):
    """
    Leaderboard table - rank is derived on read from (score, time_spent)
    """
    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint("quiz_id", "user_id", name="uq_leaderboard_quiz_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    attempt_id = Column(Uuid, ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    user = relationship("User")

    def __repr__(self):
        return f"<LeaderboardEntry(quiz_id={self.quiz_id}, user_id={self.user_id}, score={self.score})>"
