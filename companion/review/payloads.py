"""
Write payloads accepted by the review subsystem.

ReviewSubmission is one answered review question. CompletedAttempt is a whole
graded quiz. Both validate client payloads through from_payload() and raise
ValidationError on missing or invalid fields.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from companion.core.coercion import parse_timestamp, safe_number, safe_text, utcnow
from companion.core.records import QuestionStat, QuizAttempt
from companion.errors import ValidationError


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _require_text(raw: Mapping[str, Any], name: str, *keys: str) -> str:
    value = _first(raw, *keys)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", field=name)
    return value.strip()


def _optional_text(raw: Mapping[str, Any], *keys: str) -> str | None:
    value = _first(raw, *keys)
    if value is None:
        return None
    text = safe_text(value).strip()
    return text or None


def _require_bool(raw: Mapping[str, Any], name: str, *keys: str) -> bool:
    value = _first(raw, *keys)
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false", field=name)
    return value


def _non_negative(raw: Mapping[str, Any], name: str, *keys: str) -> float:
    value = _first(raw, *keys)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(f"{name} must be a number", field=name)
    number = safe_number(value, -1.0)
    if number < 0:
        raise ValidationError(f"{name} must be a non-negative number", field=name)
    return number


@dataclass(frozen=True)
class ReviewSubmission:
    """One answer to a review question."""

    question_id: str
    is_correct: bool
    response_time: float = 0.0  # seconds
    selected_option_id: str | None = None
    text_answer: str | None = None
    quality: int | None = None  # SM-2 quality 0-5
    submission_id: str | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> ReviewSubmission:
        """
        Validate a client payload (camelCase or snake_case keys).

        Raises:
            ValidationError: On a missing question id or correctness flag, or
                an invalid response time or quality
        """
        if not isinstance(raw, Mapping):
            raise ValidationError("Submission must be an object")

        quality = _first(raw, "quality")
        if quality is not None:
            if isinstance(quality, bool) or not isinstance(quality, int) or not 0 <= quality <= 5:
                raise ValidationError("quality must be an integer from 0 to 5", field="quality")

        return cls(
            question_id=_require_text(raw, "questionId", "questionId", "question_id"),
            is_correct=_require_bool(raw, "isCorrect", "isCorrect", "is_correct"),
            response_time=_non_negative(raw, "responseTime", "responseTime", "response_time"),
            selected_option_id=_optional_text(raw, "selectedOptionId", "selected_option_id"),
            text_answer=_optional_text(raw, "textAnswer", "text_answer"),
            quality=quality,
            submission_id=_optional_text(raw, "submissionId", "submission_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "responseTime": self.response_time,
            "selectedOptionId": self.selected_option_id,
            "textAnswer": self.text_answer,
            "quality": self.quality,
            "submissionId": self.submission_id,
        }


@dataclass(frozen=True)
class AnsweredQuestion:
    """One response within a completed quiz attempt."""

    question_id: str
    is_correct: bool
    response_time: float = 0.0
    marks: int = 1
    selected_option_id: str | None = None
    text_answer: str | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> AnsweredQuestion:
        if not isinstance(raw, Mapping):
            raise ValidationError("Each answer must be an object", field="answers")
        marks = _non_negative(raw, "marks", "marks") if raw.get("marks") is not None else 1.0
        return cls(
            question_id=_require_text(raw, "questionId", "questionId", "question_id"),
            is_correct=_require_bool(raw, "isCorrect", "isCorrect", "is_correct"),
            response_time=_non_negative(raw, "responseTime", "responseTime", "response_time"),
            marks=int(round(marks)),
            selected_option_id=_optional_text(raw, "selectedOptionId", "selected_option_id"),
            text_answer=_optional_text(raw, "textAnswer", "text_answer"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "responseTime": self.response_time,
            "marks": self.marks,
            "selectedOptionId": self.selected_option_id,
            "textAnswer": self.text_answer,
        }


@dataclass(frozen=True)
class CompletedAttempt:
    """A finished quiz session to be graded and recorded."""

    quiz_id: str
    answers: tuple[AnsweredQuestion, ...]
    quiz_title: str = ""
    topic: str = ""
    mode: str = "standard"
    time_spent: int = 0
    completed_at: datetime = field(default_factory=utcnow)

    @property
    def total_marks(self) -> int:
        return sum(answer.marks for answer in self.answers)

    @property
    def earned_marks(self) -> int:
        return sum(answer.marks for answer in self.answers if answer.is_correct)

    @property
    def score(self) -> float:
        """Accuracy percentage; 0 for an attempt worth no marks."""
        total = self.total_marks
        return self.earned_marks / total * 100.0 if total > 0 else 0.0

    @classmethod
    def from_payload(cls, raw: Any) -> CompletedAttempt:
        if not isinstance(raw, Mapping):
            raise ValidationError("Attempt must be an object")
        answers = raw.get("answers")
        if not isinstance(answers, list) or not answers:
            raise ValidationError("answers must be a non-empty list", field="answers")

        completed_at = _first(raw, "completedAt", "completed_at")
        parsed_completed_at = parse_timestamp(completed_at) if completed_at is not None else utcnow()
        if parsed_completed_at is None:
            raise ValidationError("completedAt is not a valid timestamp", field="completedAt")

        parsed_answers = tuple(AnsweredQuestion.from_payload(answer) for answer in answers)
        time_spent = _non_negative(raw, "timeSpent", "timeSpent", "time_spent")
        if not time_spent:
            time_spent = sum(answer.response_time for answer in parsed_answers)

        return cls(
            quiz_id=_require_text(raw, "quizId", "quizId", "quiz_id"),
            answers=parsed_answers,
            quiz_title=_optional_text(raw, "quizTitle", "quiz_title") or "",
            topic=_optional_text(raw, "topic") or "",
            mode=_optional_text(raw, "mode") or "standard",
            time_spent=int(round(time_spent)),
            completed_at=parsed_completed_at,
        )

    def to_quiz_attempt(self, attempt_id: str) -> QuizAttempt:
        return QuizAttempt(
            id=attempt_id,
            quiz_id=self.quiz_id,
            quiz_title=self.quiz_title,
            score=self.score,
            total_marks=self.total_marks,
            earned_marks=self.earned_marks,
            time_spent=self.time_spent,
            completed_at=self.completed_at,
            topic=self.topic,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "quizTitle": self.quiz_title,
            "topic": self.topic or None,
            "mode": self.mode,
            "timeSpent": self.time_spent,
            "completedAt": self.completed_at.isoformat(),
            "answers": [answer.to_dict() for answer in self.answers],
        }


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of a review write at the store."""

    stat: QuestionStat
    duplicate: bool = False
