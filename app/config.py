"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str

    # Auth
    JWT_SECRET_KEY: str
    JWT_REFRESH_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Google sign-in
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/auth/google/callback"

    # Gemini API (quiz import)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Application
    APP_NAME: str = "QuizHub"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_PER_HOUR: int = 3000

    # Quiz Settings
    QUIZ_CACHE_TTL: int = 3600  # 1 hour
    MAX_IMPORT_QUESTIONS: int = 50
    LEADERBOARD_DEFAULT_LIMIT: int = 50

    # Attempt sweep
    ATTEMPT_SWEEP_INTERVAL_SECONDS: int = 60  # 0 disables the background sweep
    ATTEMPT_EXPIRY_GRACE_SECONDS: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def refresh_secret(self) -> str:
        return self.JWT_REFRESH_SECRET_KEY or self.JWT_SECRET_KEY


# Global settings instance
settings = Settings()
