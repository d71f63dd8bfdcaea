"""
Rundeklar Training API Server

FastAPI server for club training sessions: check-ins, round arrangement,
match results and statistics.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from rundeklar.api.routes import router, limiter as routes_limiter
from rundeklar.database import db
from rundeklar.services import court_service
from rundeklar.services.session_cleanup_service import get_session_cleanup_service
from rundeklar.services.training_api import DEFAULT_TENANT_ID

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Courts created for the default tenant on startup
DEFAULT_COURT_COUNT = int(os.getenv("DEFAULT_COURT_COUNT", "8"))


async def seed_default_courts() -> None:
    async with db.AsyncSessionLocal() as session:
        await court_service.ensure_courts(session, DEFAULT_TENANT_ID, DEFAULT_COURT_COUNT)
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Rundeklar Training API...")

    # Initialize database (create tables if they don't exist)
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start even if initialization fails

    try:
        await seed_default_courts()
        logger.info(f"Courts seeded for tenant {DEFAULT_TENANT_ID}")
    except Exception as e:
        logger.error(f"Failed to seed courts: {e}", exc_info=True)

    # Start session cleanup worker (auto-end stale sessions)
    try:
        cleanup_service = get_session_cleanup_service()
        cleanup_service.start()
    except Exception as e:
        logger.error(f"Failed to start session cleanup worker: {e}", exc_info=True)

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Rundeklar Training API...")

    try:
        cleanup_service = get_session_cleanup_service()
        cleanup_service.stop()
    except Exception as e:
        logger.error(f"Error stopping session cleanup worker: {e}", exc_info=True)


app = FastAPI(
    title="Rundeklar Training API",
    description="API for running club training sessions and arranging rounds",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


def run():
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
