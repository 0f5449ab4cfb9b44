"""
Review Submission Handler.

Records answers to review questions and completed quizzes. Every successful
write invalidates the user's cached queue and analytics; a failed write
propagates and leaves caches untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from companion.cache import ReviewCache
from companion.core.records import QuestionStat, QuizAttempt
from companion.gamification.xp import xp_reward
from companion.store.base import AttemptStore

from .payloads import CompletedAttempt, ReviewSubmission
from .scheduler import quality_for


@dataclass(frozen=True)
class SubmissionResult:
    stat: QuestionStat
    quality: int
    xp_reward: int
    duplicate: bool = False

    @property
    def message(self) -> str:
        if self.duplicate:
            return "Review already recorded"
        return "Review recorded"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "duplicate": self.duplicate,
            "quality": self.quality,
            "xpReward": self.xp_reward,
            "stats": self.stat.to_dict(),
        }


class ReviewSubmissionHandler:
    """Applies review answers and completed attempts to the Attempt Store."""

    def __init__(self, store: AttemptStore, cache: ReviewCache | None = None):
        self.store = store
        self.cache = cache

    async def submit(self, user_id: str, submission: ReviewSubmission) -> SubmissionResult:
        """
        Record one review answer.

        Args:
            user_id: Learner id
            submission: Validated submission

        Returns:
            SubmissionResult with the updated stat and XP reward

        Raises:
            TransportError: Store unreachable
            NotFoundError: Unknown question
        """
        quality = submission.quality if submission.quality is not None else quality_for(
            submission.is_correct
        )

        outcome = await self.store.record_review(user_id, submission, quality)

        if self.cache is not None:
            self.cache.invalidate_user(user_id)

        logger.info(
            f"Review {submission.question_id} by {user_id}: "
            f"{'correct' if submission.is_correct else 'incorrect'} (q={quality})"
            + (" [duplicate]" if outcome.duplicate else "")
        )
        return SubmissionResult(
            stat=outcome.stat,
            quality=quality,
            xp_reward=0 if outcome.duplicate else xp_reward(quality),
            duplicate=outcome.duplicate,
        )

    async def record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        """Record a graded quiz attempt and refresh the user's cached views."""
        recorded = await self.store.record_attempt(user_id, attempt)

        if self.cache is not None:
            self.cache.invalidate_user(user_id)

        logger.info(
            f"Attempt on quiz {attempt.quiz_id} by {user_id}: {round(attempt.score)}% "
            f"({attempt.earned_marks}/{attempt.total_marks})"
        )
        return recorded
