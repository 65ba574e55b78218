"""
Analytics service for user performance and platform statistics
"""
import logging
from typing import Dict, List, Any
from sqlalchemy.orm import Session
from sqlalchemy import func
from collections import defaultdict
from app.models import (
    AttemptStatus,
    LeaderboardEntry,
    Notification,
    Quiz,
    TestAttempt,
    User,
)
from app.services.leaderboard_service import leaderboard_service
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

FINISHED = (AttemptStatus.COMPLETED.value, AttemptStatus.LATE.value)


class AnalyticsService:
    """Service for generating performance analytics"""

    def get_user_performance(self, db: Session, user: User) -> Dict[str, Any]:
        """
        Get performance analytics for a user

        Only completed and late attempts are scored; abandoned ones are
        counted separately.

        Args:
            db: Database session
            user: Current user

        Returns:
            Dictionary with performance metrics
        """
        attempts = (
            db.query(TestAttempt, Quiz.title)
            .join(Quiz, Quiz.id == TestAttempt.quiz_id)
            .filter(TestAttempt.user_id == user.id)
            .all()
        )

        finished = [(a, title) for a, title in attempts if a.status in FINISHED]
        abandoned = sum(1 for a, _ in attempts if a.status == AttemptStatus.ABANDONED.value)
        in_progress = sum(1 for a, _ in attempts if a.status == AttemptStatus.IN_PROGRESS.value)
        late = sum(1 for a, _ in finished if a.status == AttemptStatus.LATE.value)

        if finished:
            avg_score = sum(a.score or 0 for a, _ in finished) / len(finished)
            total_time = sum(a.completion_time or 0 for a, _ in finished)
        else:
            avg_score = 0.0
            total_time = 0

        quiz_breakdown = self._quiz_breakdown(db, user, finished)

        return {
            "user_id": str(user.id),
            "total_attempts": len(attempts),
            "finished_attempts": len(finished),
            "late_attempts": late,
            "abandoned_attempts": abandoned,
            "in_progress_attempts": in_progress,
            "overall_avg_score": round(avg_score, 2),
            "total_time_spent": total_time,
            "quizzes": quiz_breakdown,
            "weak_quizzes": [q["quiz_title"] for q in quiz_breakdown if q["best_score"] < 50],
        }

    def _quiz_breakdown(self, db: Session, user: User, finished) -> List[Dict[str, Any]]:
        """Per-quiz attempt count, best and average score, and leaderboard rank"""
        per_quiz = defaultdict(lambda: {"scores": [], "title": ""})
        for attempt, title in finished:
            per_quiz[attempt.quiz_id]["scores"].append(attempt.score or 0)
            per_quiz[attempt.quiz_id]["title"] = title

        breakdown = []
        for quiz_id, data in per_quiz.items():
            rank = leaderboard_service.get_user_rank(db, quiz_id, user.id)
            breakdown.append({
                "quiz_id": str(quiz_id),
                "quiz_title": data["title"],
                "attempts": len(data["scores"]),
                "best_score": max(data["scores"]),
                "avg_score": round(sum(data["scores"]) / len(data["scores"]), 2),
                "rank": rank["rank"] if rank else None,
            })

        # Best first
        breakdown.sort(key=lambda x: x["best_score"], reverse=True)
        return breakdown

    def get_platform_stats(self, db: Session) -> Dict[str, Any]:
        """Admin dashboard counters"""
        now = utcnow()

        status_counts = dict(
            db.query(TestAttempt.status, func.count(TestAttempt.id))
            .group_by(TestAttempt.status)
            .all()
        )

        avg_score = db.query(func.avg(TestAttempt.score)).filter(
            TestAttempt.status.in_(FINISHED)
        ).scalar()

        return {
            "total_users": db.query(func.count(User.id)).scalar(),
            "blocked_users": db.query(func.count(User.id)).filter(User.is_blocked.is_(True)).scalar(),
            "premium_users": db.query(func.count(User.id)).filter(
                User.premium_until.isnot(None), User.premium_until > now
            ).scalar(),
            "total_quizzes": db.query(func.count(Quiz.id)).scalar(),
            "premium_quizzes": db.query(func.count(Quiz.id)).filter(Quiz.is_premium.is_(True)).scalar(),
            "hidden_quizzes": db.query(func.count(Quiz.id)).filter(Quiz.is_hidden.is_(True)).scalar(),
            "attempts_by_status": {
                status.value: status_counts.get(status.value, 0) for status in AttemptStatus
            },
            "avg_score": round(float(avg_score), 2) if avg_score is not None else 0.0,
            "leaderboard_entries": db.query(func.count(LeaderboardEntry.id)).scalar(),
            "unread_notifications": db.query(func.count(Notification.id)).filter(
                Notification.is_read.is_(False)
            ).scalar(),
        }


# Global instance
analytics_service = AnalyticsService()
