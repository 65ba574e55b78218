"""
Database engine, session factory and declarative base
"""
import logging

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from app.config import settings

logger = logging.getLogger(__name__)


class UniversalJSON(TypeDecorator):
    """
    Uses JSONB for PostgreSQL.
    Uses JSON for SQLite and others.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite: TestClient and the sweep task use the session from other threads
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30.0},
        future=True,
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        future=True,
    )

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    """Dependency for getting a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables that do not exist yet"""
    # Import models so they are registered on Base.metadata
    import app.models  # noqa: F401

    logger.info(f"Database dialect: {engine.url.get_backend_name()}")
    Base.metadata.create_all(bind=engine)
