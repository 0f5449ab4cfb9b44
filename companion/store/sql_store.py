"""
SQL-backed Attempt Store.

Runs blocking SQLAlchemy work in a worker thread so the async service never
blocks its event loop. Database errors surface as TransportError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

from loguru import logger
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from companion.core.coercion import parse_timestamp, utcnow
from companion.core.records import OptionPayload, QuestionPayload, QuestionStat, QuizAttempt
from companion.core.tags import normalize_tags, primary_topic
from companion.db.database import get_session_factory, session_scope
from companion.db.models import (
    Quiz,
    QuizAttemptRow,
    QuizOption,
    QuizQuestion,
    QuizResponse,
    ReviewSubmissionRow,
    UserQuestionStat,
)
from companion.errors import NotFoundError, TransportError
from companion.review.payloads import CompletedAttempt, ReviewOutcome, ReviewSubmission
from companion.review.scheduler import SM2Scheduler, apply_review, quality_for

from .base import AttemptStore

T = TypeVar("T")


class SqlAttemptStore(AttemptStore):
    """Attempt Store over the local relational database."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        scheduler: SM2Scheduler | None = None,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.scheduler = scheduler or SM2Scheduler()

    async def _run(self, operation: str, func: Callable[..., T], *args) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            raise TransportError(f"Database unavailable during {operation}") from e

    # ========================================
    # Reads
    # ========================================

    async def list_attempts(self, user_id: str) -> list[QuizAttempt]:
        return await self._run("list_attempts", self._list_attempts, user_id)

    async def list_question_stats(self, user_id: str) -> list[QuestionStat]:
        return await self._run("list_question_stats", self._list_question_stats, user_id)

    async def get_questions(self, question_ids: Iterable[str]) -> dict[str, QuestionPayload]:
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return {}
        return await self._run("get_questions", self._get_questions, ids)

    def _list_attempts(self, user_id: str) -> list[QuizAttempt]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(QuizAttemptRow)
                .options(selectinload(QuizAttemptRow.quiz))
                .where(QuizAttemptRow.user_id == user_id)
            ).all()
            return [_attempt_from_row(row) for row in rows]

    def _list_question_stats(self, user_id: str) -> list[QuestionStat]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(UserQuestionStat)
                .options(selectinload(UserQuestionStat.question).selectinload(QuizQuestion.quiz))
                .where(UserQuestionStat.user_id == user_id)
            ).all()
            return [_stat_from_row(row.question, row) for row in rows]

    def _get_questions(self, question_ids: list[str]) -> dict[str, QuestionPayload]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(QuizQuestion)
                .options(selectinload(QuizQuestion.options))
                .where(QuizQuestion.id.in_(question_ids))
            ).all()
            return {row.id: _question_from_row(row) for row in rows}

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._ping)
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    def _ping(self) -> None:
        with session_scope(self.session_factory) as session:
            session.execute(text("SELECT 1"))

    # ========================================
    # Writes
    # ========================================

    async def record_review(
        self,
        user_id: str,
        submission: ReviewSubmission,
        quality: int,
    ) -> ReviewOutcome:
        return await self._run("record_review", self._record_review, user_id, submission, quality)

    async def record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        return await self._run("record_attempt", self._record_attempt, user_id, attempt)

    def _record_review(
        self,
        user_id: str,
        submission: ReviewSubmission,
        quality: int,
    ) -> ReviewOutcome:
        now = utcnow()
        with session_scope(self.session_factory) as session:
            question = session.get(QuizQuestion, submission.question_id)
            if question is None:
                raise NotFoundError(f"Question {submission.question_id} not found")

            if submission.submission_id:
                seen = session.get(
                    ReviewSubmissionRow, (user_id, question.id, submission.submission_id)
                )
                if seen is not None:
                    logger.info(f"Duplicate review submission {submission.submission_id} ignored")
                    row = self._get_stat_row(session, user_id, question.id)
                    return ReviewOutcome(stat=_stat_from_row(question, row), duplicate=True)

            row = self._apply_answer(
                session,
                user_id,
                question,
                is_correct=submission.is_correct,
                response_time=submission.response_time,
                quality=quality,
                now=now,
            )

            # Each review also counts as a single-question "spaced" attempt
            attempt = QuizAttemptRow(
                user_id=user_id,
                quiz_id=question.quiz_id,
                mode="spaced",
                score=100.0 if submission.is_correct else 0.0,
                total_marks=1,
                earned_marks=1 if submission.is_correct else 0,
                time_spent=int(round(submission.response_time)),
                started_at=now,
                completed_at=now,
            )
            attempt.responses.append(
                QuizResponse(
                    question_id=question.id,
                    selected_option_id=submission.selected_option_id,
                    text_answer=submission.text_answer,
                    is_correct=submission.is_correct,
                    marks_awarded=1 if submission.is_correct else 0,
                    response_time=submission.response_time,
                    answered_at=now,
                )
            )
            session.add(attempt)

            if submission.submission_id:
                session.add(
                    ReviewSubmissionRow(
                        submission_id=submission.submission_id,
                        user_id=user_id,
                        question_id=question.id,
                        created_at=now,
                    )
                )

            session.flush()
            return ReviewOutcome(stat=_stat_from_row(question, row))

    def _record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        with session_scope(self.session_factory) as session:
            question_ids = [answer.question_id for answer in attempt.answers]
            questions = {
                q.id: q
                for q in session.scalars(
                    select(QuizQuestion)
                    .options(selectinload(QuizQuestion.quiz))
                    .where(QuizQuestion.id.in_(question_ids))
                ).all()
            }
            missing = [qid for qid in question_ids if qid not in questions]
            if missing:
                raise NotFoundError(f"Unknown question(s): {', '.join(sorted(set(missing)))}")

            quiz = session.get(Quiz, attempt.quiz_id)
            if quiz is None:
                raise NotFoundError(f"Quiz {attempt.quiz_id} not found")

            row = QuizAttemptRow(
                user_id=user_id,
                quiz_id=quiz.id,
                mode=attempt.mode,
                score=attempt.score,
                total_marks=attempt.total_marks,
                earned_marks=attempt.earned_marks,
                time_spent=attempt.time_spent,
                started_at=attempt.completed_at,
                completed_at=attempt.completed_at,
            )
            for answer in attempt.answers:
                row.responses.append(
                    QuizResponse(
                        question_id=answer.question_id,
                        selected_option_id=answer.selected_option_id,
                        text_answer=answer.text_answer,
                        is_correct=answer.is_correct,
                        marks_awarded=answer.marks if answer.is_correct else 0,
                        response_time=answer.response_time,
                        answered_at=attempt.completed_at,
                    )
                )
                self._apply_answer(
                    session,
                    user_id,
                    questions[answer.question_id],
                    is_correct=answer.is_correct,
                    response_time=answer.response_time,
                    quality=quality_for(answer.is_correct),
                    now=attempt.completed_at,
                )
            session.add(row)
            session.flush()

            logger.info(
                f"Recorded attempt {row.id} for {user_id}: "
                f"{attempt.earned_marks}/{attempt.total_marks}"
            )
            return _attempt_from_row(row)

    # ========================================
    # Helpers
    # ========================================

    def _get_stat_row(
        self, session: Session, user_id: str, question_id: str
    ) -> UserQuestionStat | None:
        return session.scalars(
            select(UserQuestionStat).where(
                UserQuestionStat.user_id == user_id,
                UserQuestionStat.question_id == question_id,
            )
        ).first()

    def _apply_answer(
        self,
        session: Session,
        user_id: str,
        question: QuizQuestion,
        *,
        is_correct: bool,
        response_time: float,
        quality: int,
        now: datetime,
    ) -> UserQuestionStat:
        row = self._get_stat_row(session, user_id, question.id)
        if row is None:
            row = UserQuestionStat(
                user_id=user_id,
                question_id=question.id,
                times_answered=0,
                times_correct=0,
                streak=0,
                average_response_time=0.0,
                ease_factor=2.5,
                interval=0,
                repetitions=0,
            )
            session.add(row)
            session.flush()

        updated = apply_review(
            _stat_from_row(question, row),
            is_correct=is_correct,
            response_time=response_time,
            quality=quality,
            now=now,
            scheduler=self.scheduler,
        )

        row.times_answered = updated.times_answered
        row.times_correct = updated.times_correct
        row.streak = updated.streak
        row.average_response_time = updated.average_response_time
        row.last_answered_at = updated.last_answered_at
        row.last_correct = updated.last_correct
        row.ease_factor = updated.ease_factor
        row.interval = updated.interval_days
        row.repetitions = updated.repetitions
        row.next_review_at = updated.next_review_at
        row.status = self.scheduler.status_for(updated.repetitions).value
        row.mastery = updated.mastery.value
        return row


def _attempt_from_row(row: QuizAttemptRow) -> QuizAttempt:
    quiz = row.quiz
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id or "",
        quiz_title=quiz.title if quiz is not None else "",
        score=row.score or 0.0,
        total_marks=row.total_marks or 0,
        earned_marks=row.earned_marks or 0,
        time_spent=row.time_spent or 0,
        completed_at=parse_timestamp(row.completed_at),
        topic=(quiz.subject or "") if quiz is not None else "",
    )


def _stat_from_row(question: QuizQuestion, row: UserQuestionStat | None) -> QuestionStat:
    quiz = question.quiz
    tags = tuple(normalize_tags(question.tags))
    base = QuestionStat(
        question_id=question.id,
        quiz_id=question.quiz_id,
        quiz_title=quiz.title if quiz is not None else "",
        question_text=question.question,
        topic=primary_topic(tags, quiz.subject if quiz is not None else None),
        tags=tags,
        difficulty=question.difficulty or 0,
    )
    if row is None:
        return base
    return QuestionStat(
        question_id=base.question_id,
        quiz_id=base.quiz_id,
        quiz_title=base.quiz_title,
        question_text=base.question_text,
        topic=base.topic,
        tags=base.tags,
        difficulty=base.difficulty,
        times_answered=row.times_answered or 0,
        times_correct=row.times_correct or 0,
        streak=row.streak or 0,
        average_response_time=row.average_response_time or 0.0,
        last_answered_at=parse_timestamp(row.last_answered_at),
        last_correct=row.last_correct,
        ease_factor=row.ease_factor if row.ease_factor is not None else 2.5,
        interval_days=row.interval or 0,
        repetitions=row.repetitions or 0,
        next_review_at=parse_timestamp(row.next_review_at),
    )


def _question_from_row(row: QuizQuestion) -> QuestionPayload:
    return QuestionPayload(
        id=row.id,
        quiz_id=row.quiz_id,
        type=row.type or "mcq",
        prompt=row.question,
        difficulty=row.difficulty or 0,
        marks=row.marks or 1,
        explanation=row.explanation,
        correct_answer=row.correct_answer,
        tags=tuple(normalize_tags(row.tags)),
        options=tuple(
            OptionPayload(
                id=option.id,
                text=option.text,
                is_correct=bool(option.is_correct),
                order=option.order or 0,
            )
            for option in sorted(row.options, key=_option_order)
        ),
    )


def _option_order(option: QuizOption) -> int:
    return option.order or 0
