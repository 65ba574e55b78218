"""
Main FastAPI application
Quiz platform with timed test attempts, leaderboards and notifications
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncio
import logging
import time

from app.config import settings
from app.database import SessionLocal, init_db
from app.api import admin, attempts, auth, leaderboard, notifications, quizzes, users
from app.exceptions import QuizHubError
from app.services.attempt_service import attempt_service
from app.utils.rate_limiter import rate_limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _run_attempt_sweep() -> int:
    db = SessionLocal()
    try:
        return attempt_service.expire_stale_attempts(db)
    finally:
        db.close()


async def attempt_sweep_loop(interval: int):
    """Periodically abandon overdue timed attempts"""
    logger.info(f"Attempt sweep running every {interval}s")
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(_run_attempt_sweep)
        except Exception as e:
            logger.error(f"Attempt sweep failed: {str(e)}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and background jobs on startup, stop them on shutdown"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    app.state.sweep_task = None
    if settings.ATTEMPT_SWEEP_INTERVAL_SECONDS > 0:
        app.state.sweep_task = asyncio.create_task(
            attempt_sweep_loop(settings.ATTEMPT_SWEEP_INTERVAL_SECONDS)
        )

    logger.info("Application startup complete")

    yield

    if app.state.sweep_task is not None:
        app.state.sweep_task.cancel()
    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Quiz platform: catalog, timed test attempts, leaderboards and notifications",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Rate limiting middleware
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Apply rate limiting to all requests"""

    if request.url.path in ["/health", "/docs", "/redoc", "/openapi.json"]:
        return await call_next(request)

    try:
        await rate_limiter.check_rate_limit(request)
    except QuizHubError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""

    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration:.3f}s"
    )

    return response


# Domain exception handler
@app.exception_handler(QuizHubError)
async def quizhub_exception_handler(request: Request, exc: QuizHubError):
    """Render service errors with their status and machine-readable code"""

    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.error} - {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors gracefully"""

    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "status_code": 500,
            "detail": str(exc) if settings.DEBUG else None
        }
    )


# HTTP exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Format HTTP exceptions consistently"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": exc.detail,
            "status_code": exc.status_code
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "QuizHub API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(quizzes.router)
app.include_router(attempts.router)
app.include_router(leaderboard.router)
app.include_router(notifications.router)
app.include_router(notifications.ws_router)
app.include_router(admin.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
