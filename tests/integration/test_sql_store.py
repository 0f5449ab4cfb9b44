"""
Integration tests for the SQL attempt store on SQLite.
"""

import pytest
from sqlalchemy import func, select

from companion.db.database import session_scope
from companion.db.models import QuizAttemptRow, ReviewSubmissionRow, UserQuestionStat
from companion.errors import NotFoundError
from companion.review.payloads import CompletedAttempt, ReviewSubmission
from companion.review.scheduler import ReviewStatus
from companion.store.sql_store import SqlAttemptStore


@pytest.fixture
def store(seeded_session_factory):
    return SqlAttemptStore(seeded_session_factory)


def _review(question_id="q1", is_correct=True, **extra):
    payload = {"questionId": question_id, "isCorrect": is_correct, "responseTime": 6}
    payload.update(extra)
    return ReviewSubmission.from_payload(payload)


def _count(session_factory, model, **filters):
    with session_scope(session_factory) as session:
        query = select(func.count()).select_from(model)
        for name, value in filters.items():
            query = query.where(getattr(model, name) == value)
        return session.scalar(query)


class TestRecordReview:
    """Tests for SqlAttemptStore.record_review()."""

    @pytest.mark.asyncio
    async def test_first_review_creates_stat(self, store, seeded_session_factory):
        outcome = await store.record_review("alice", _review(), 4)

        stat = outcome.stat
        assert outcome.duplicate is False
        assert stat.question_id == "q1"
        assert stat.topic == "Biology"
        assert stat.quiz_title == "Cell Biology"
        assert stat.times_answered == 1
        assert stat.times_correct == 1
        assert stat.streak == 1
        assert stat.repetitions == 1
        assert stat.interval_days == 1
        assert stat.last_correct is True
        assert stat.next_review_at is not None

        with session_scope(seeded_session_factory) as session:
            row = session.scalars(select(UserQuestionStat)).one()
            assert row.status == ReviewStatus.REVIEWING.value
            assert row.mastery == "learning"

    @pytest.mark.asyncio
    async def test_review_adds_spaced_attempt(self, store, seeded_session_factory):
        await store.record_review("alice", _review(is_correct=False), 1)

        with session_scope(seeded_session_factory) as session:
            attempt = session.scalars(select(QuizAttemptRow)).one()
            assert attempt.mode == "spaced"
            assert attempt.quiz_id == "quiz-1"
            assert attempt.score == 0.0
            assert attempt.total_marks == 1
            assert len(attempt.responses) == 1
            assert attempt.responses[0].question_id == "q1"

    @pytest.mark.asyncio
    async def test_reviews_accumulate(self, store):
        await store.record_review("alice", _review(), 4)
        await store.record_review("alice", _review(), 5)
        outcome = await store.record_review("alice", _review(is_correct=False), 1)

        assert outcome.stat.times_answered == 3
        assert outcome.stat.times_correct == 2
        assert outcome.stat.streak == 0
        assert outcome.stat.repetitions == 0

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store, seeded_session_factory):
        await store.record_review("alice", _review(), 4)
        await store.record_review("bob", _review(), 4)

        assert _count(seeded_session_factory, UserQuestionStat) == 2
        assert len(await store.list_question_stats("alice")) == 1

    @pytest.mark.asyncio
    async def test_duplicate_submission(self, store, seeded_session_factory):
        first = await store.record_review("alice", _review(submissionId="sub-1"), 4)
        second = await store.record_review("alice", _review(submissionId="sub-1"), 4)

        assert second.duplicate is True
        assert second.stat.times_answered == first.stat.times_answered == 1
        assert _count(seeded_session_factory, ReviewSubmissionRow) == 1
        assert _count(seeded_session_factory, QuizAttemptRow) == 1

    @pytest.mark.asyncio
    async def test_same_submission_id_from_another_user(self, store, seeded_session_factory):
        await store.record_review("alice", _review(submissionId="s1"), 4)
        outcome = await store.record_review("bob", _review(submissionId="s1"), 4)

        assert outcome.duplicate is False
        assert outcome.stat.times_answered == 1
        assert _count(seeded_session_factory, ReviewSubmissionRow) == 2

    @pytest.mark.asyncio
    async def test_same_submission_id_on_another_question(self, store, seeded_session_factory):
        await store.record_review("alice", _review("q1", submissionId="s1"), 4)
        outcome = await store.record_review("alice", _review("q2", submissionId="s1"), 4)

        assert outcome.duplicate is False
        assert outcome.stat.question_id == "q2"
        assert outcome.stat.times_answered == 1
        assert _count(seeded_session_factory, QuizAttemptRow) == 2

    @pytest.mark.asyncio
    async def test_unknown_question(self, store, seeded_session_factory):
        with pytest.raises(NotFoundError):
            await store.record_review("alice", _review("missing"), 4)

        assert _count(seeded_session_factory, QuizAttemptRow) == 0


class TestRecordAttempt:
    """Tests for SqlAttemptStore.record_attempt()."""

    @pytest.mark.asyncio
    async def test_records_attempt_and_stats(self, store):
        attempt = CompletedAttempt.from_payload(
            {
                "quizId": "quiz-1",
                "completedAt": "2025-03-09T10:00:00Z",
                "answers": [
                    {"questionId": "q1", "isCorrect": True, "responseTime": 10},
                    {"questionId": "q2", "isCorrect": False, "responseTime": 20},
                ],
            }
        )

        recorded = await store.record_attempt("alice", attempt)

        assert recorded.id
        assert recorded.quiz_title == "Cell Biology"
        assert recorded.topic == "Biology"
        assert recorded.score == 50.0
        assert recorded.time_spent == 30

        stats = {stat.question_id: stat for stat in await store.list_question_stats("alice")}
        assert stats["q1"].last_correct is True
        assert stats["q2"].last_correct is False
        assert stats["q2"].topic == "Genetics"

    @pytest.mark.asyncio
    async def test_unknown_question_rejected(self, store, seeded_session_factory):
        attempt = CompletedAttempt.from_payload(
            {"quizId": "quiz-1", "answers": [{"questionId": "nope", "isCorrect": True}]}
        )

        with pytest.raises(NotFoundError):
            await store.record_attempt("alice", attempt)

        assert _count(seeded_session_factory, QuizAttemptRow) == 0

    @pytest.mark.asyncio
    async def test_unknown_quiz_rejected(self, store):
        attempt = CompletedAttempt.from_payload(
            {"quizId": "quiz-9", "answers": [{"questionId": "q1", "isCorrect": True}]}
        )

        with pytest.raises(NotFoundError):
            await store.record_attempt("alice", attempt)


class TestReads:
    @pytest.mark.asyncio
    async def test_list_attempts(self, store):
        await store.record_review("alice", _review(), 4)

        attempts = await store.list_attempts("alice")

        assert len(attempts) == 1
        assert attempts[0].is_completed
        assert attempts[0].completed_at.tzinfo is not None
        assert await store.list_attempts("bob") == []

    @pytest.mark.asyncio
    async def test_untagged_question_uses_quiz_subject(self, store):
        await store.record_review("alice", _review("q3"), 4)

        stats = await store.list_question_stats("alice")

        assert stats[0].topic == "Biology"
        assert stats[0].tags == ()

    @pytest.mark.asyncio
    async def test_get_questions(self, store):
        questions = await store.get_questions(["q1", "q2", "missing"])

        assert set(questions) == {"q1", "q2"}
        q1 = questions["q1"]
        assert q1.prompt == "What is the powerhouse of the cell?"
        assert q1.tags == ("Biology", "Cells")
        assert [option.id for option in q1.options] == ["q1-a", "q1-b"]
        assert q1.options[0].is_correct is True

    @pytest.mark.asyncio
    async def test_get_questions_empty(self, store):
        assert await store.get_questions([]) == {}

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        assert await store.health_check() is True
