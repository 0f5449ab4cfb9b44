"""
Analytics router.

Endpoints for:
- Aggregated learning analytics (summary, topics, recent activity, streaks)
- Raw completed attempts behind the aggregation
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from companion.api.dependencies import get_review_service, get_user_id, to_http_error
from companion.errors import CompanionError
from companion.service import ReviewService

router = APIRouter()


class AttemptListResponse(BaseModel):
    attempts: list[dict[str, Any]]
    total: int


@router.get("", summary="Get learning analytics")
async def get_analytics(
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> dict[str, Any]:
    """
    Aggregated analytics for the requesting user.

    Returns summary, topicPerformance, strengths, areasToImprove,
    recentActivity, quizPerformance and streak.
    """
    logger.info(f"Fetching analytics for {user_id}")
    try:
        report = await service.get_analytics(user_id)
    except CompanionError as e:
        logger.error(f"Analytics failed for {user_id}: {e}")
        raise to_http_error(e) from e
    return report.to_dict()


@router.get("/attempts", response_model=AttemptListResponse, summary="Get completed attempts")
async def get_attempts(
    user_id: str = Depends(get_user_id),
    service: ReviewService = Depends(get_review_service),
) -> AttemptListResponse:
    """Completed attempts of the requesting user, newest first."""
    try:
        attempts = await service.get_raw_attempts(user_id)
    except CompanionError as e:
        logger.error(f"Listing attempts failed for {user_id}: {e}")
        raise to_http_error(e) from e
    return AttemptListResponse(
        attempts=[attempt.to_dict() for attempt in attempts],
        total=len(attempts),
    )
