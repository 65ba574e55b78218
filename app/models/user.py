"""
User model - accounts, roles and premium entitlement
"""
from sqlalchemy import Column, String, Boolean, TIMESTAMP, Uuid
import uuid

from app.utils.timeutils import utcnow
from app.database import Base


class User(Base):
    """
    Users table - local and Google accounts
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(150), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=True)  # null for Google users
    google_id = Column(String(255), unique=True, nullable=True)
    avatar_url = Column(String(512), nullable=True)
    role = Column(String(20), nullable=False, default="user")  # user / admin
    premium_until = Column(TIMESTAMP, nullable=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_premium(self, now) -> bool:
        """Admins always have access; others need an unexpired subscription"""
        if self.is_admin:
            return True
        return self.premium_until is not None and self.premium_until > now

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
