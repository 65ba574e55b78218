"""
Password hashing and JWT helpers
"""
from datetime import timedelta
from typing import Any, Dict

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.config import settings
from app.exceptions import AuthenticationError
from app.utils.timeutils import utcnow

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def _encode(subject: str, token_type: str, expires: timedelta, secret: str) -> str:
    payload = {
        "sub": subject,
        "type": token_type,
        "exp": utcnow() + expires,
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(subject: str) -> str:
    return _encode(
        subject,
        ACCESS,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        settings.JWT_SECRET_KEY,
    )


def create_refresh_token(subject: str) -> str:
    return _encode(
        subject,
        REFRESH,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        settings.refresh_secret,
    )


def decode_token(token: str, token_type: str = ACCESS) -> Dict[str, Any]:
    """
    Decode and check a token

    Raises:
        AuthenticationError: bad signature, expired, or wrong token type
    """
    secret = settings.JWT_SECRET_KEY if token_type == ACCESS else settings.refresh_secret
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Token is invalid or expired", error="invalid_token")

    if payload.get("type") != token_type or not payload.get("sub"):
        raise AuthenticationError("Token is invalid or expired", error="invalid_token")

    return payload
