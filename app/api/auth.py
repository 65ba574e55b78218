"""
Authentication API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.api.dependencies import get_current_user
from app.database import get_db
from app.models import User
from app.schemas.auth import (
    GoogleLoginResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from app.schemas.user import UserOut
from app.services.auth_service import auth_service
from app.services import google_oauth

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a local account and sign it in"""
    user = auth_service.register(
        db,
        username=request.username,
        email=request.email,
        password=request.password,
        name=request.name,
    )
    return auth_service.issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, request.login, request.password)
    logger.info(f"User logged in: {user.id}")
    return auth_service.issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(request: RefreshRequest, db: Session = Depends(get_db)):
    return auth_service.refresh(db, request.refresh_token)


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return user


@router.get("/google/login", response_model=GoogleLoginResponse)
async def google_login():
    """Google consent screen URL for the client to redirect to"""
    return GoogleLoginResponse(url=google_oauth.get_google_login_url())


@router.get("/google/callback", response_model=TokenResponse)
async def google_callback(code: str, db: Session = Depends(get_db)):
    """
    Finish Google sign-in

    - Exchanges the authorization code for a Google access token
    - Links the profile to an existing account by email, or creates one
    - Returns our own token pair
    """
    token = await google_oauth.exchange_code_for_token(code)
    info = await google_oauth.get_google_user_info(token["access_token"])
    user = auth_service.login_with_google(db, info)
    return auth_service.issue_tokens(user)
