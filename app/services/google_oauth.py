"""
Google OAuth code flow over httpx
"""
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.exceptions import AuthenticationError, InvalidError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


def _ensure_configured() -> None:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise InvalidError("Google sign-in is not configured", error="google_not_configured")


def get_google_login_url() -> str:
    _ensure_configured()
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_token(code: str) -> Dict[str, Any]:
    _ensure_configured()
    async with httpx.AsyncClient(timeout=10.0) as client:
        res = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    if res.status_code != 200:
        logger.warning(f"Google token exchange failed: {res.status_code} {res.text}")
        raise AuthenticationError("Google sign-in failed", error="google_auth_failed")

    return res.json()


async def get_google_user_info(access_token: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=10.0) as client:
        res = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if res.status_code != 200:
        logger.warning(f"Google user info failed: {res.status_code} {res.text}")
        raise AuthenticationError("Google sign-in failed", error="google_auth_failed")

    return res.json()
