"""
Unit tests for the review service (retries, caching, queue content).
"""

import asyncio

import pytest

from companion.cache import ReviewCache
from companion.errors import TransportError
from companion.review.payloads import ReviewSubmission
from companion.review.queue_builder import ReviewLabel
from companion.service import ReviewService
from conftest import FakeAttemptStore, make_attempt


@pytest.fixture
def service(fake_store):
    return ReviewService(fake_store, cache=ReviewCache(queue_ttl=60, analytics_ttl=60))


class TestFetchRetries:
    """Transport failures are retried, then reported."""

    @pytest.mark.asyncio
    async def test_recovers_within_retries(self, service, fake_store, now):
        fake_store.fail_reads = 2

        report = await service.get_analytics("alice", now=now)

        assert report.summary.total_quizzes_taken == 2
        assert fake_store.read_calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, service, fake_store, now):
        fake_store.fail_reads = 3

        with pytest.raises(TransportError) as exc_info:
            await service.get_analytics("alice", now=now)

        assert exc_info.value.attempts == 3
        assert fake_store.read_calls == 3

    @pytest.mark.asyncio
    async def test_no_retries(self, fake_store, now):
        service = ReviewService(fake_store, fetch_retries=0)
        fake_store.fail_reads = 1

        with pytest.raises(TransportError) as exc_info:
            await service.get_review_queue("alice", 10, now=now)

        assert exc_info.value.attempts == 1


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_report_is_cached(self, service, fake_store, now):
        first = await service.get_analytics("alice", now=now)
        second = await service.get_analytics("alice", now=now)

        assert first is second
        assert fake_store.read_calls == 1

    @pytest.mark.asyncio
    async def test_uncached_by_default(self, fake_store, now):
        service = ReviewService(fake_store)

        await service.get_analytics("alice", now=now)
        await service.get_analytics("alice", now=now)

        assert fake_store.read_calls == 2

    @pytest.mark.asyncio
    async def test_raw_attempts_newest_first(self, service, fake_store):
        fake_store.attempts.append(make_attempt(id="in-progress", completed_at=None))

        attempts = await service.get_raw_attempts("alice")

        assert [attempt.id for attempt in attempts] == ["a1", "a2"]


class TestReviewQueue:
    """Tests for ReviewService.get_review_queue()."""

    @pytest.mark.asyncio
    async def test_embeds_question_content(self, service, now):
        items = await service.get_review_queue("alice", 10, now=now)

        assert [item.question_id for item in items] == ["q1", "q2"]
        assert [item.label for item in items] == [ReviewLabel.NEEDS_REVIEW, ReviewLabel.DUE_FOR_REVIEW]
        assert items[0].question.prompt == "What is ATP?"

    @pytest.mark.asyncio
    async def test_missing_content_keeps_item(self, service, fake_store, now):
        del fake_store.questions["q2"]

        items = await service.get_review_queue("alice", 10, now=now)

        assert items[1].question is None

    @pytest.mark.asyncio
    async def test_zero_limit_skips_store(self, service, fake_store, now):
        assert await service.get_review_queue("alice", 0, now=now) == []
        assert fake_store.read_calls == 0

    @pytest.mark.asyncio
    async def test_cache_per_limit(self, service, fake_store, now):
        await service.get_review_queue("alice", 10, now=now)
        calls = fake_store.read_calls
        await service.get_review_queue("alice", 10, now=now)
        assert fake_store.read_calls == calls

        one = await service.get_review_queue("alice", 1, now=now)
        assert len(one) == 1
        assert fake_store.read_calls > calls

    @pytest.mark.asyncio
    async def test_submission_refreshes_queue(self, service, fake_store, now):
        before = await service.get_review_queue("alice", 10, now=now)
        assert before[0].question_id == "q1"

        await service.submit_review(
            "alice", ReviewSubmission.from_payload({"questionId": "q1", "isCorrect": True})
        )
        after = await service.get_review_queue("alice", 10, now=now)

        assert [item.question_id for item in after] == ["q2"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_closes_store(self, service, fake_store):
        await service.close()

        assert fake_store.closed is True

    @pytest.mark.asyncio
    async def test_health_check(self, service):
        assert await service.health_check() is True


class BlockingStatsStore(FakeAttemptStore):
    """Reads question stats, then waits until released before returning them."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.block_next = True

    async def list_question_stats(self, user_id):
        stats = await super().list_question_stats(user_id)
        if self.block_next:
            self.block_next = False
            self.entered.set()
            await self.release.wait()
        return stats


class TestConcurrentSubmission:
    @pytest.mark.asyncio
    async def test_queue_read_before_submission_is_not_cached(self, fake_store, now):
        store = BlockingStatsStore(fake_store.attempts, fake_store.stats, fake_store.questions)
        service = ReviewService(store, cache=ReviewCache(queue_ttl=60))

        in_flight = asyncio.create_task(service.get_review_queue("alice", 10, now=now))
        await store.entered.wait()
        await service.submit_review(
            "alice", ReviewSubmission.from_payload({"questionId": "q1", "isCorrect": True})
        )
        store.release.set()
        stale = await in_flight

        assert stale[0].question_id == "q1"

        after = await service.get_review_queue("alice", 10, now=now)

        assert [item.question_id for item in after] == ["q2"]
