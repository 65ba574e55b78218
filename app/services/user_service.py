"""
User service - profile edits and admin account management
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import InvalidError, NotFoundError
from app.models import User
from app.utils.timeutils import as_naive_utc

logger = logging.getLogger(__name__)


class UserService:

    def update_profile(self, db: Session, user: User, changes: dict) -> User:
        if "name" in changes and changes["name"] is None:
            raise InvalidError("name cannot be null")

        for field, value in changes.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user

    def list_users(
        self,
        db: Session,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[User]:
        query = db.query(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        return query.order_by(User.created_at.desc()).offset(skip).limit(limit).all()

    def admin_update(self, db: Session, admin: User, user_id: UUID, changes: dict) -> User:
        """
        Change role, premium entitlement or blocked flag of an account

        Raises:
            NotFoundError: user missing
            InvalidError: admin trying to block or demote themselves
        """
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", error="user_not_found")

        if user.id == admin.id and (changes.get("is_blocked") or changes.get("role") == "user"):
            raise InvalidError("Admins cannot block or demote themselves", error="self_update")

        for field in ("role", "is_blocked"):
            if field in changes and changes[field] is None:
                raise InvalidError(f"{field} cannot be null")

        if "premium_until" in changes:
            changes["premium_until"] = as_naive_utc(changes["premium_until"])

        for field, value in changes.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)

        logger.info(f"Admin {admin.id} updated user {user.id}: {sorted(changes)}")
        return user


# Global instance
user_service = UserService()
