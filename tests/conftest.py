"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from companion.core.records import QuestionPayload, QuestionStat, QuizAttempt  # noqa: E402
from companion.errors import NotFoundError, TransportError  # noqa: E402
from companion.review.payloads import ReviewOutcome  # noqa: E402
from companion.review.scheduler import apply_review  # noqa: E402
from companion.store.base import AttemptStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database, API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Time
# ========================================

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for deterministic date math."""
    return NOW


def days_ago(days: float, reference: datetime = NOW) -> datetime:
    return reference - timedelta(days=days)


# ========================================
# Record Factories
# ========================================


def make_attempt(**overrides) -> QuizAttempt:
    values = {
        "id": "attempt-1",
        "quiz_id": "quiz-1",
        "quiz_title": "Cell Biology",
        "score": 80.0,
        "total_marks": 10,
        "earned_marks": 8,
        "time_spent": 300,
        "completed_at": days_ago(1),
        "topic": "Biology",
    }
    values.update(overrides)
    return QuizAttempt(**values)


def make_stat(question_id: str = "q1", **overrides) -> QuestionStat:
    values = {
        "question_id": question_id,
        "quiz_id": "quiz-1",
        "quiz_title": "Cell Biology",
        "question_text": f"Question {question_id}?",
        "topic": "Biology",
        "times_answered": 4,
        "times_correct": 4,
        "streak": 4,
        "average_response_time": 8.0,
        "last_answered_at": days_ago(1),
        "last_correct": True,
    }
    values.update(overrides)
    return QuestionStat(**values)


# ========================================
# Fake Attempt Store
# ========================================


class FakeAttemptStore(AttemptStore):
    """In-memory AttemptStore with failure injection."""

    def __init__(self, attempts=None, stats=None, questions=None):
        self.attempts = list(attempts or [])
        self.stats = list(stats or [])
        self.questions = dict(questions or {})
        self.fail_reads = 0  # number of upcoming reads that raise TransportError
        self.fail_writes = False
        self.read_calls = 0
        self.reviews = []
        self.seen_submissions = set()
        self.recorded_attempts = []
        self.closed = False

    def _read(self):
        self.read_calls += 1
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise TransportError("store offline")

    async def list_attempts(self, user_id):
        self._read()
        return list(self.attempts)

    async def list_question_stats(self, user_id):
        self._read()
        return list(self.stats)

    async def get_questions(self, question_ids):
        self._read()
        return {qid: self.questions[qid] for qid in question_ids if qid in self.questions}

    async def record_review(self, user_id, submission, quality):
        if self.fail_writes:
            raise TransportError("store offline")
        current = next((s for s in self.stats if s.question_id == submission.question_id), None)
        if current is None:
            if submission.question_id not in self.questions:
                raise NotFoundError(f"Question {submission.question_id} not found")
            current = QuestionStat(question_id=submission.question_id)
        seen_key = (user_id, submission.question_id, submission.submission_id)
        if submission.submission_id and seen_key in self.seen_submissions:
            return ReviewOutcome(stat=current, duplicate=True)

        updated = apply_review(
            current,
            is_correct=submission.is_correct,
            response_time=submission.response_time,
            quality=quality,
            now=NOW,
        )
        self.stats = [s for s in self.stats if s.question_id != updated.question_id] + [updated]
        self.reviews.append((user_id, submission, quality))
        if submission.submission_id:
            self.seen_submissions.add(seen_key)
        return ReviewOutcome(stat=updated)

    async def record_attempt(self, user_id, attempt):
        if self.fail_writes:
            raise TransportError("store offline")
        recorded = attempt.to_quiz_attempt(f"attempt-{len(self.recorded_attempts) + 1}")
        self.recorded_attempts.append(recorded)
        self.attempts.append(recorded)
        return recorded

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_store():
    return FakeAttemptStore(
        attempts=[
            make_attempt(id="a1", score=90.0, earned_marks=9, completed_at=days_ago(1)),
            make_attempt(
                id="a2",
                quiz_id="quiz-2",
                quiz_title="Algebra",
                topic="Math",
                score=40.0,
                earned_marks=4,
                completed_at=days_ago(2),
            ),
        ],
        stats=[
            make_stat("q1", last_correct=False, streak=0, times_correct=2),
            make_stat("q2", last_answered_at=days_ago(10)),
        ],
        questions={
            "q1": QuestionPayload(id="q1", quiz_id="quiz-1", prompt="What is ATP?"),
            "q2": QuestionPayload(id="q2", quiz_id="quiz-1", prompt="What is a ribosome?"),
        },
    )


# ========================================
# SQLite Database
# ========================================


@pytest.fixture
def sqlite_session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database with all tables."""
    from companion.db.database import build_engine, build_session_factory, init_db

    engine = build_engine(f"sqlite:///{tmp_path / 'companion.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def seeded_session_factory(sqlite_session_factory):
    """SQLite database with one quiz of three questions."""
    from companion.db.database import session_scope
    from companion.db.models import Quiz, QuizOption, QuizQuestion

    with session_scope(sqlite_session_factory) as session:
        quiz = Quiz(id="quiz-1", title="Cell Biology", subject="Biology")
        quiz.questions = [
            QuizQuestion(
                id="q1",
                question="What is the powerhouse of the cell?",
                explanation="Mitochondria produce ATP.",
                tags=["Biology", "Cells"],
                order=1,
                options=[
                    QuizOption(id="q1-a", text="Mitochondria", is_correct=True, order=1),
                    QuizOption(id="q1-b", text="Nucleus", is_correct=False, order=2),
                ],
            ),
            QuizQuestion(id="q2", question="What does DNA stand for?", tags="Genetics", order=2),
            QuizQuestion(id="q3", question="Name a plant organelle.", order=3),
        ]
        session.add(quiz)
    return sqlite_session_factory
