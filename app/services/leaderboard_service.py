"""
Leaderboard service - best finished attempt per user per quiz
"""
import logging
from typing import Dict, Any, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from app.config import settings
from app.exceptions import NotFoundError
from app.models import LeaderboardEntry, Quiz
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class LeaderboardService:
    """
    Service for quiz leaderboards

    Ranking: score descending, then time spent ascending, then whoever
    reached the entry first. Ranks are computed on read.
    """

    def record_attempt(
        self,
        db: Session,
        quiz_id: UUID,
        user_id: UUID,
        attempt_id: UUID,
        score: int,
        time_spent: int
    ) -> str:
        """
        Keep the user's best result for a quiz

        Returns:
            "created", "updated" or "skipped"
        """
        entry = db.query(LeaderboardEntry).filter(
            LeaderboardEntry.quiz_id == quiz_id,
            LeaderboardEntry.user_id == user_id,
        ).first()

        if entry is None:
            db.add(LeaderboardEntry(
                quiz_id=quiz_id,
                user_id=user_id,
                attempt_id=attempt_id,
                score=score,
                time_spent=time_spent,
                updated_at=utcnow(),
            ))
            db.commit()
            return "created"

        better_score = score > entry.score
        faster_tie = score == entry.score and time_spent < entry.time_spent
        if not (better_score or faster_tie):
            return "skipped"

        entry.score = score
        entry.time_spent = time_spent
        entry.attempt_id = attempt_id
        entry.updated_at = utcnow()
        db.commit()
        return "updated"

    def get_quiz_leaderboard(
        self,
        db: Session,
        quiz_id: UUID,
        limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Top entries for a quiz

        Raises:
            NotFoundError: quiz missing
        """
        quiz = db.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found", error="quiz_not_found")

        limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT

        entries = (
            db.query(LeaderboardEntry)
            .options(joinedload(LeaderboardEntry.user))
            .filter(LeaderboardEntry.quiz_id == quiz_id)
            .order_by(
                LeaderboardEntry.score.desc(),
                LeaderboardEntry.time_spent.asc(),
                LeaderboardEntry.updated_at.asc(),
            )
            .limit(limit)
            .all()
        )

        total = db.query(func.count(LeaderboardEntry.id)).filter(
            LeaderboardEntry.quiz_id == quiz_id
        ).scalar()

        return {
            "quiz_id": quiz.id,
            "quiz_title": quiz.title,
            "total_participants": total,
            "entries": [
                {
                    "rank": position,
                    "entry_id": entry.id,
                    "user_id": entry.user_id,
                    "username": entry.user.username if entry.user else None,
                    "score": entry.score,
                    "time_spent": entry.time_spent,
                    "completed_at": entry.updated_at,
                }
                for position, entry in enumerate(entries, start=1)
            ],
        }

    def get_user_rank(self, db: Session, quiz_id: UUID, user_id: UUID) -> Optional[Dict[str, Any]]:
        """Rank of one user in a quiz, or None if the user has no entry"""
        entry = db.query(LeaderboardEntry).filter(
            LeaderboardEntry.quiz_id == quiz_id,
            LeaderboardEntry.user_id == user_id,
        ).first()

        if entry is None:
            return None

        ahead = db.query(func.count(LeaderboardEntry.id)).filter(
            LeaderboardEntry.quiz_id == quiz_id,
            or_(
                LeaderboardEntry.score > entry.score,
                and_(
                    LeaderboardEntry.score == entry.score,
                    LeaderboardEntry.time_spent < entry.time_spent,
                ),
                and_(
                    LeaderboardEntry.score == entry.score,
                    LeaderboardEntry.time_spent == entry.time_spent,
                    LeaderboardEntry.updated_at < entry.updated_at,
                ),
            ),
        ).scalar()

        total = db.query(func.count(LeaderboardEntry.id)).filter(
            LeaderboardEntry.quiz_id == quiz_id
        ).scalar()

        return {
            "quiz_id": quiz_id,
            "rank": ahead + 1,
            "total_participants": total,
            "score": entry.score,
            "time_spent": entry.time_spent,
        }

    def delete_entry(self, db: Session, entry_id: UUID) -> None:
        """Admin removal of a leaderboard entry"""
        entry = db.get(LeaderboardEntry, entry_id)
        if entry is None:
            raise NotFoundError("Leaderboard entry not found")

        db.delete(entry)
        db.commit()

        logger.info(f"Leaderboard entry {entry_id} deleted (quiz {entry.quiz_id}, user {entry.user_id})")


# Global instance
leaderboard_service = LeaderboardService()
