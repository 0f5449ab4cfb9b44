"""
Review Service.

Front door of the review and analytics subsystem. Fetches a user's data from
the Attempt Store (retrying transport failures), runs the pure aggregation
and queue building, and caches the results until the user's data changes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from loguru import logger

from companion.analytics.aggregator import AnalyticsPolicy, AnalyticsReport, aggregate_analytics
from companion.cache import ANALYTICS, QUEUE, ReviewCache
from companion.core.coercion import utcnow
from companion.core.records import QuizAttempt
from companion.errors import TransportError
from companion.review.payloads import CompletedAttempt, ReviewSubmission
from companion.review.queue_builder import ReviewPolicy, SpacedReviewItem, build_review_queue
from companion.review.submission import ReviewSubmissionHandler, SubmissionResult
from companion.store.base import AttemptStore
from companion.store.http_client import AttemptStoreClient
from companion.store.sql_store import SqlAttemptStore

T = TypeVar("T")


class ReviewService:
    """Analytics, review queue and submission operations for one store."""

    def __init__(
        self,
        store: AttemptStore,
        cache: ReviewCache | None = None,
        analytics_policy: AnalyticsPolicy | None = None,
        review_policy: ReviewPolicy | None = None,
        fetch_retries: int = 2,
    ):
        self.store = store
        self.cache = cache or ReviewCache()
        self.analytics_policy = analytics_policy or AnalyticsPolicy()
        self.review_policy = review_policy or ReviewPolicy()
        self.fetch_retries = max(0, fetch_retries)
        self.handler = ReviewSubmissionHandler(store, self.cache)

    @classmethod
    def from_settings(cls, settings) -> ReviewService:
        """Build the service and its store from application settings."""
        store: AttemptStore
        if settings.attempt_store_url:
            store = AttemptStoreClient(
                settings.attempt_store_url, timeout_ms=settings.attempt_store_timeout_ms
            )
            logger.info(f"Using remote attempt store at {settings.attempt_store_url}")
        else:
            store = SqlAttemptStore()
            logger.info("Using local database attempt store")

        return cls(
            store,
            cache=ReviewCache.from_config(settings.get_cache_config()),
            analytics_policy=settings.get_analytics_policy(),
            review_policy=settings.get_review_policy(),
            fetch_retries=settings.fetch_retries,
        )

    async def close(self) -> None:
        await self.store.close()

    async def health_check(self) -> bool:
        return await self.store.health_check()

    async def _fetch(self, operation: str, fetch: Callable[[], Awaitable[T]]) -> T:
        """Run a store read, retrying TransportError without backoff."""
        attempts = self.fetch_retries + 1
        last_error: TransportError | None = None

        for attempt in range(attempts):
            try:
                return await fetch()
            except TransportError as e:
                last_error = e
                logger.warning(f"{operation} failed on attempt {attempt + 1}/{attempts}: {e}")

        logger.error(f"{operation} failed after {attempts} attempts")
        raise TransportError(str(last_error), attempts=attempts) from last_error

    # ========================================
    # Analytics
    # ========================================

    async def get_analytics(self, user_id: str, now: datetime | None = None) -> AnalyticsReport:
        """
        Aggregated analytics for a user.

        Raises:
            TransportError: Store unreachable after all retries
        """
        cached = self.cache.get(ANALYTICS, user_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(user_id)
        attempts = await self._fetch("list_attempts", lambda: self.store.list_attempts(user_id))
        report = aggregate_analytics(attempts, self.analytics_policy, now or utcnow())
        self.cache.set(ANALYTICS, user_id, report, generation=generation)
        return report

    async def get_raw_attempts(self, user_id: str) -> list[QuizAttempt]:
        """Completed attempts fed to the aggregator, newest first."""
        attempts = await self._fetch("list_attempts", lambda: self.store.list_attempts(user_id))
        completed = [attempt for attempt in attempts if attempt.is_completed]
        completed.sort(key=lambda attempt: attempt.completed_at, reverse=True)
        return completed

    # ========================================
    # Review Queue
    # ========================================

    async def get_review_queue(
        self,
        user_id: str,
        limit: int = 20,
        now: datetime | None = None,
    ) -> list[SpacedReviewItem]:
        """
        Ordered review queue with embedded question content.

        Args:
            user_id: Learner id
            limit: Maximum number of items (<= 0 yields an empty queue)
            now: Reference time (defaults to UTC now)

        Raises:
            TransportError: Store unreachable after all retries
        """
        if limit <= 0:
            return []

        cached = self.cache.get(QUEUE, user_id, limit)
        if cached is not None:
            return cached

        generation = self.cache.generation(user_id)
        stats = await self._fetch(
            "list_question_stats", lambda: self.store.list_question_stats(user_id)
        )
        items = build_review_queue(stats, limit, self.review_policy, now)

        if items:
            ids = [item.question_id for item in items]
            questions = await self._fetch("get_questions", lambda: self.store.get_questions(ids))
            missing = [qid for qid in ids if qid not in questions]
            if missing:
                logger.warning(f"No content for {len(missing)} queued question(s) of {user_id}")
            items = [item.with_question(questions.get(item.question_id)) for item in items]

        self.cache.set(QUEUE, user_id, items, limit, generation=generation)
        return items

    # ========================================
    # Writes
    # ========================================

    async def submit_review(self, user_id: str, submission: ReviewSubmission) -> SubmissionResult:
        return await self.handler.submit(user_id, submission)

    async def record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        return await self.handler.record_attempt(user_id, attempt)
