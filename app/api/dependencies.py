"""
Shared FastAPI dependencies - current user resolution and role checks
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AuthenticationError, ForbiddenError
from app.models import User
from app.services.auth_service import auth_service

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    if not token:
        raise AuthenticationError("Not authenticated")
    return auth_service.user_from_token(db, token)


def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Anonymous browsing is allowed; a bad token is still rejected"""
    if not token:
        return None
    return auth_service.user_from_token(db, token)


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin privileges required", error="admin_required")
    return user
