"""
Auth service - registration, credential checks, token issue and Google linking
"""
import logging
from typing import Dict, Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import AuthenticationError, ConflictError, ForbiddenError
from app.models import User
from app.utils.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Service for user accounts and tokens"""

    def register(self, db: Session, username: str, email: str, password: str, name: str = None) -> User:
        """
        Create a local account

        Raises:
            ConflictError: username or email already taken
        """
        existing = db.query(User).filter(
            or_(User.username == username, User.email == email)
        ).first()
        if existing:
            field = "username" if existing.username == username else "email"
            raise ConflictError(f"This {field} is already registered", error=f"{field}_taken")

        user = User(
            username=username,
            email=email,
            name=name or username,
            password_hash=hash_password(password),
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"User registered: {user.username} ({user.id})")
        return user

    def authenticate(self, db: Session, login: str, password: str) -> User:
        """
        Check credentials; login is a username or an email

        Raises:
            AuthenticationError: unknown user or wrong password
            ForbiddenError: user is blocked
        """
        user = db.query(User).filter(
            or_(User.username == login, User.email == login)
        ).first()

        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for '{login}'")
            raise AuthenticationError("Incorrect username or password", error="invalid_credentials")

        self.ensure_active(user)
        return user

    @staticmethod
    def ensure_active(user: User) -> None:
        if user.is_blocked:
            raise ForbiddenError("This account has been blocked", error="user_blocked")

    def issue_tokens(self, user: User) -> Dict[str, Any]:
        subject = str(user.id)
        return {
            "access_token": create_access_token(subject),
            "refresh_token": create_refresh_token(subject),
            "token_type": "bearer",
        }

    def user_from_token(self, db: Session, token: str, token_type: str = "access") -> User:
        """
        Resolve the user a token belongs to

        Raises:
            AuthenticationError: bad token or user gone
            ForbiddenError: user is blocked
        """
        payload = decode_token(token, token_type)
        try:
            user_id = UUID(payload["sub"])
        except ValueError:
            raise AuthenticationError("Token is invalid or expired", error="invalid_token")

        user = db.get(User, user_id)
        if user is None:
            raise AuthenticationError("User not found", error="invalid_token")

        self.ensure_active(user)
        return user

    def refresh(self, db: Session, refresh_token: str) -> Dict[str, Any]:
        user = self.user_from_token(db, refresh_token, REFRESH)
        return self.issue_tokens(user)

    def login_with_google(self, db: Session, info: Dict[str, Any]) -> User:
        """
        Link or create the account for a Google profile

        An existing account with the same email gets the Google id attached.
        """
        google_id = info.get("sub")
        email = info.get("email")
        if not google_id or not email:
            raise AuthenticationError("Google profile is missing an id or email", error="google_auth_failed")

        user = db.query(User).filter(User.google_id == google_id).first()
        if user is None:
            user = db.query(User).filter(User.email == email).first()
            if user is not None:
                user.google_id = google_id
                logger.info(f"Linked Google account to user {user.id}")

        if user is None:
            user = User(
                username=self._unique_username(db, email.split("@")[0]),
                email=email,
                name=info.get("name") or email,
                google_id=google_id,
                avatar_url=info.get("picture"),
            )
            db.add(user)
            logger.info(f"Created user from Google sign-in: {email}")
        elif not user.avatar_url and info.get("picture"):
            user.avatar_url = info.get("picture")

        db.commit()
        db.refresh(user)

        self.ensure_active(user)
        return user

    @staticmethod
    def _unique_username(db: Session, base: str) -> str:
        candidate = base or "user"
        suffix = 1
        while db.query(User.id).filter(User.username == candidate).first():
            suffix += 1
            candidate = f"{base}{suffix}"
        return candidate


# Global instance
auth_service = AuthService()
