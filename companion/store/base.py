"""
Attempt Store interface.

The review service only talks to the store through this interface, so the
local database and the remote HTTP store are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from companion.core.records import QuestionPayload, QuestionStat, QuizAttempt
from companion.review.payloads import CompletedAttempt, ReviewOutcome, ReviewSubmission


class AttemptStore(ABC):
    """
    Async access to a user's attempts, question stats and question content.

    Read failures raise TransportError. Writes raise TransportError when the
    store is unreachable and NotFoundError for an unknown question.
    """

    @abstractmethod
    async def list_attempts(self, user_id: str) -> list[QuizAttempt]:
        """All quiz attempts of a user, in any order."""

    @abstractmethod
    async def list_question_stats(self, user_id: str) -> list[QuestionStat]:
        """Per-question answer history of a user (may contain duplicates)."""

    @abstractmethod
    async def get_questions(self, question_ids: Iterable[str]) -> dict[str, QuestionPayload]:
        """Question content by id; unknown ids are left out."""

    @abstractmethod
    async def record_review(
        self,
        user_id: str,
        submission: ReviewSubmission,
        quality: int,
    ) -> ReviewOutcome:
        """Apply one review answer and return the updated stat."""

    @abstractmethod
    async def record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        """Persist a graded quiz attempt and fold its answers into question stats."""

    async def health_check(self) -> bool:
        """True when the store answers requests."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
