"""Spaced review: queue building, SM-2 scheduling and answer submission."""

from .payloads import CompletedAttempt, ReviewSubmission
from .queue_builder import (
    ReviewLabel,
    ReviewPolicy,
    SpacedReviewItem,
    build_review_queue,
    summarize_queue,
)
from .scheduler import SM2Scheduler, apply_review, quality_for

__all__ = [
    "CompletedAttempt",
    "ReviewLabel",
    "ReviewPolicy",
    "ReviewSubmission",
    "SM2Scheduler",
    "SpacedReviewItem",
    "apply_review",
    "build_review_queue",
    "quality_for",
    "summarize_queue",
]
