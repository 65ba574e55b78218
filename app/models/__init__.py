"""
Database models package
"""
from app.models.user import User
from app.models.quiz import Quiz
from app.models.question import Question, AnswerOption
from app.models.test_attempt import AttemptStatus, TestAttempt, DraftAnswer
from app.models.leaderboard import LeaderboardEntry
from app.models.notification import Notification

__all__ = [
    "User",
    "Quiz",
    "Question",
    "AnswerOption",
    "AttemptStatus",
    "TestAttempt",
    "DraftAnswer",
    "LeaderboardEntry",
    "Notification",
]
