"""
Review router.

Endpoints for the spaced review loop:
- Ordered review queue with embedded question content
- Answer submission (SM-2 update, XP reward)
- Recording completed quiz attempts
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import get_settings
from companion.api.dependencies import get_review_service, get_user_id, to_http_error
from companion.errors import CompanionError
from companion.review.payloads import CompletedAttempt, ReviewSubmission
from companion.review.queue_builder import summarize_queue
from companion.service import ReviewService

router = APIRouter()
attempts_router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ReviewSubmitRequest(BaseModel):
    """
    Review answer body.

    Fields are loosely typed here and validated by ReviewSubmission so that
    missing or invalid values answer 400 rather than 422.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_id: Any = Field(None, alias="questionId")
    selected_option_id: Any = Field(None, alias="selectedOptionId")
    text_answer: Any = Field(None, alias="textAnswer")
    is_correct: Any = Field(None, alias="isCorrect")
    response_time: Any = Field(None, alias="responseTime")
    quality: Any = None
    submission_id: Any = Field(None, alias="submissionId")


class AttemptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quiz_id: Any = Field(None, alias="quizId")
    quiz_title: Any = Field(None, alias="quizTitle")
    topic: Any = None
    mode: Any = None
    time_spent: Any = Field(None, alias="timeSpent")
    completed_at: Any = Field(None, alias="completedAt")
    answers: Any = None


class ReviewQueueResponse(BaseModel):
    items: list[dict[str, Any]]
    counts: dict[str, int]
    limit: int


def _clamp_limit(limit: int | None) -> int:
    settings = get_settings()
    if limit is None:
        return settings.default_queue_limit
    return min(limit, settings.max_queue_limit)


# ========================================
# Review Queue Endpoints
# ========================================


@router.get("/queue", response_model=ReviewQueueResponse, summary="Get review queue")
async def get_review_queue(
    limit: int | None = Query(None, description="Maximum items (default 20, max 100)"),
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ReviewQueueResponse:
    """
    Questions to review, highest priority first.

    Labels in order: Needs Review, Weak Topic, Due for Review.
    """
    effective = _clamp_limit(limit)
    logger.info(f"Fetching review queue for {user_id} (limit={effective})")
    try:
        items = await service.get_review_queue(user_id, effective)
    except CompanionError as e:
        logger.error(f"Review queue failed for {user_id}: {e}")
        raise to_http_error(e) from e

    return ReviewQueueResponse(
        items=[item.to_dict() for item in items],
        counts=summarize_queue(items),
        limit=effective,
    )


@router.get("/due", summary="Get due review items")
async def get_due_items(
    limit: int | None = Query(None, description="Maximum items (default 20, max 100)"),
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> list[dict[str, Any]]:
    """Review queue items as a bare list."""
    try:
        items = await service.get_review_queue(user_id, _clamp_limit(limit))
    except CompanionError as e:
        logger.error(f"Due items failed for {user_id}: {e}")
        raise to_http_error(e) from e
    return [item.to_dict() for item in items]


@router.post("/submit", summary="Submit a review answer")
async def submit_review(
    request: ReviewSubmitRequest,
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> dict[str, Any]:
    """
    Record an answer to a review question.

    Updates the question's stats and SM-2 schedule, and returns the XP
    earned. Resubmitting the same submissionId is a no-op.
    """
    try:
        submission = ReviewSubmission.from_payload(
            request.model_dump(by_alias=True, exclude_none=True)
        )
        result = await service.submit_review(user_id, submission)
    except CompanionError as e:
        logger.warning(f"Review submission rejected for {user_id}: {e}")
        raise to_http_error(e) from e
    return result.to_dict()


# ========================================
# Attempt Endpoints
# ========================================


@attempts_router.post("", status_code=201, summary="Record a completed quiz attempt")
async def record_attempt(
    request: AttemptRequest,
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> dict[str, Any]:
    """Grade and store a finished quiz; every answer updates its question stats."""
    try:
        attempt = CompletedAttempt.from_payload(
            request.model_dump(by_alias=True, exclude_none=True)
        )
        recorded = await service.record_attempt(user_id, attempt)
    except CompanionError as e:
        logger.warning(f"Attempt rejected for {user_id}: {e}")
        raise to_http_error(e) from e
    return {"success": True, "attempt": recorded.to_dict()}
