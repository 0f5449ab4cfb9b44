"""
Quiz and review models.

Implements:
- Quiz / QuizQuestion / QuizOption: Question content
- QuizAttemptRow / QuizResponse: Completed sessions and their answers
- UserQuestionStat: Per-user, per-question answer history and SM-2 state
- ReviewSubmissionRow: Client submission ids already applied (idempotency)

Column types are portable so the same schema runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _uuid() -> str:
    return str(uuid4())


class Quiz(Base):
    """A quiz grouping questions under one subject."""

    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    subject: Mapped[str | None] = mapped_column(Text)  # topic shown in analytics
    difficulty: Mapped[int] = mapped_column(Integer, default=1)
    time_limit: Mapped[int | None] = mapped_column(Integer)  # minutes
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    questions: Mapped[list[QuizQuestion]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan", order_by="QuizQuestion.order"
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id} title={self.title!r}>"


class QuizQuestion(Base):
    """
    A question with its content.

    Types:
    - mcq: Multiple choice (options carry the correct flag)
    - true_false: True/False
    - short_answer: Free text compared to correct_answer
    """

    __tablename__ = "quiz_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    quiz_id: Mapped[str] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), default="mcq")
    question: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text)
    correct_answer: Mapped[str | None] = mapped_column(Text)
    difficulty: Mapped[int] = mapped_column(Integer, default=1)
    marks: Mapped[int] = mapped_column(Integer, default=1)
    tags: Mapped[list[str] | None] = mapped_column(JSON)
    order: Mapped[int] = mapped_column(Integer, default=0)

    quiz: Mapped[Quiz] = relationship(back_populates="questions")
    options: Mapped[list[QuizOption]] = relationship(
        back_populates="question", cascade="all, delete-orphan", order_by="QuizOption.order"
    )

    def __repr__(self) -> str:
        return f"<QuizQuestion {self.id} type={self.type}>"


class QuizOption(Base):
    __tablename__ = "quiz_options"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    order: Mapped[int] = mapped_column(Integer, default=0)

    question: Mapped[QuizQuestion] = relationship(back_populates="options")


class QuizAttemptRow(Base):
    """
    One quiz session.

    mode is "standard" for a full quiz and "spaced" for a single review answer.
    completed_at is NULL while the session is in progress.
    """

    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    quiz_id: Mapped[str | None] = mapped_column(ForeignKey("quizzes.id", ondelete="SET NULL"))
    mode: Mapped[str] = mapped_column(String(32), default="standard")
    score: Mapped[float] = mapped_column(Float, default=0.0)  # accuracy percentage
    total_marks: Mapped[int] = mapped_column(Integer, default=0)
    earned_marks: Mapped[int] = mapped_column(Integer, default=0)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    quiz: Mapped[Quiz | None] = relationship()
    responses: Mapped[list[QuizResponse]] = relationship(
        back_populates="attempt", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_attempts_user_completed", "user_id", "completed_at"),)

    def __repr__(self) -> str:
        return f"<QuizAttemptRow {self.id} user={self.user_id} score={self.score}>"


class QuizResponse(Base):
    __tablename__ = "quiz_responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(String(36), nullable=False)
    selected_option_id: Mapped[str | None] = mapped_column(String(36))
    text_answer: Mapped[str | None] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    marks_awarded: Mapped[int] = mapped_column(Integer, default=0)
    response_time: Mapped[float] = mapped_column(Float, default=0.0)  # seconds
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    attempt: Mapped[QuizAttemptRow] = relationship(back_populates="responses")


class UserQuestionStat(Base):
    """
    Answer history and SM-2 state of one user for one question.

    status follows SM-2 repetitions: learning (0), reviewing (1-2), mastered (3+).
    mastery is the review label derived from accuracy and streak.
    """

    __tablename__ = "user_question_stats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )

    # Answer history
    times_answered: Mapped[int] = mapped_column(Integer, default=0)
    times_correct: Mapped[int] = mapped_column(Integer, default=0)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    average_response_time: Mapped[float] = mapped_column(Float, default=0.0)
    last_answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_correct: Mapped[bool | None] = mapped_column(Boolean)

    # SM-2 scheduling
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    next_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16), default="learning")
    mastery: Mapped[str] = mapped_column(String(16), default="new")

    question: Mapped[QuizQuestion] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_question"),
        Index("idx_stats_user_next_review", "user_id", "next_review_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserQuestionStat user={self.user_id} question={self.question_id} "
            f"answered={self.times_answered}>"
        )


class ReviewSubmissionRow(Base):
    """
    A client submission id that has already been applied.

    Ids are scoped to one user and one question; the same id from another
    user or for another question is a separate submission.
    """

    __tablename__ = "review_submissions"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    question_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    submission_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
