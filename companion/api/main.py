"""
FastAPI application for the Campus Companion review service.

Provides REST API for:
- Learning analytics over completed quiz attempts
- Spaced review queue and answer submission
- Recording completed quiz attempts
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from companion import __version__
from companion.api.dependencies import get_review_service
from companion.api.routers import analytics_router, review_router
from companion.db.database import init_db
from companion.log import configure_logging
from companion.service import ReviewService
from config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_file)
    logger.info("Starting campus-companion review service...")
    if not settings.attempt_store_url:
        init_db()
    app.state.review_service = ReviewService.from_settings(settings)
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down campus-companion review service...")
    await app.state.review_service.close()


app = FastAPI(
    title="Campus Companion Review Service",
    description="""
    Spaced review scheduling and learning analytics.

    ## Features

    - **Analytics**: Accuracy summary, topic strengths and weaknesses, recent activity, streaks
    - **Review Queue**: Questions to revisit, labelled Needs Review, Weak Topic or Due for Review
    - **Submission**: SM-2 rescheduling with XP rewards

    Requests identify the learner with the `X-User-Id` header.
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "campus-companion",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
async def health_check(service: ReviewService = Depends(get_review_service)) -> dict[str, Any]:
    """Health check with an actual attempt store round trip."""
    store_ok = await service.health_check()

    return {
        "status": "healthy" if store_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "attempt_store": "ok" if store_ok else "error",
            "store_type": "remote" if settings.attempt_store_url else "database",
        },
    }


# ========================================
# Mount routers
# ========================================

app.include_router(analytics_router.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(review_router.router, prefix="/api/review", tags=["Review"])
app.include_router(review_router.attempts_router, prefix="/api/attempts", tags=["Attempts"])
