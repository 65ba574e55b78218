"""
Shared fixtures: a throwaway SQLite database, a TestClient and factories
"""
import os
import tempfile
import uuid
from datetime import timedelta

# Settings are read at import time, so the environment goes first
_DB_PATH = os.path.join(tempfile.gettempdir(), f"quizhub-test-{uuid.uuid4().hex}.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["JWT_REFRESH_SECRET_KEY"] = "test-refresh-secret-key"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"
os.environ["GEMINI_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_PER_HOUR"] = "100000"
os.environ["ATTEMPT_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine
from app.main import app
from app.models import AnswerOption, Question, Quiz, User
from app.utils.rate_limiter import rate_limiter
from app.utils.security import create_access_token, hash_password
from app.utils.timeutils import utcnow

from helpers import OPTION_LABELS


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    """Extra independent sessions, closed at teardown"""
    sessions = []

    def _make():
        session = SessionLocal()
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(username=None, role="user", premium=False, password=None, is_blocked=False):
        username = username or f"user{uuid.uuid4().hex[:8]}"
        user = User(
            username=username,
            email=f"{username}@quizhub.io",
            name=username.title(),
            password_hash=hash_password(password) if password else None,
            role=role,
            premium_until=utcnow() + timedelta(days=30) if premium else None,
            is_blocked=is_blocked,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_quiz(db):
    """
    Quiz with four options (A-D) per question

    correct gives the index of the correct option for each question, so
    correct=[1, 3, 2] is a three-question quiz answered B, D, C.
    """
    def _make(owner, correct=(1, 3, 2), time_limit=10, is_premium=False, is_hidden=False, title="General knowledge"):
        quiz = Quiz(
            owner_id=owner.id,
            title=title,
            description="Test quiz",
            time_limit=time_limit,
            is_premium=is_premium,
            is_hidden=is_hidden,
            total_questions=len(correct),
            total_attempts=0,
        )
        db.add(quiz)
        db.flush()

        for position, correct_index in enumerate(correct, start=1):
            question = Question(quiz_id=quiz.id, position=position, content=f"Question {position}", type="mcq")
            for index, label in enumerate(OPTION_LABELS):
                question.options.append(AnswerOption(
                    position=index + 1,
                    content=f"Option {label}",
                    is_correct=index == correct_index,
                ))
            db.add(question)

        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _headers

