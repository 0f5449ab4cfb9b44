"""
Records read from the Attempt Store.

Each record parses loosely-typed payloads (camelCase or snake_case keys,
missing fields, stringly-typed numbers) through from_raw() and never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .coercion import parse_timestamp, safe_bool, safe_int, safe_number, safe_text
from .mastery import MasteryLabel, question_accuracy
from .tags import normalize_tags, primary_topic


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present, non-None value among several key spellings."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _isoformat(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


@dataclass(frozen=True)
class QuizAttempt:
    """One completed (or in-progress) quiz session."""

    id: str = ""
    quiz_id: str = ""
    quiz_title: str = ""
    score: float = 0.0  # accuracy percentage 0-100
    total_marks: int = 0
    earned_marks: int = 0
    time_spent: int = 0  # seconds
    completed_at: datetime | None = None
    topic: str = ""

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> QuizAttempt:
        """Parse an attempt from a store row or API payload."""
        total_marks = max(0, safe_int(_pick(raw, "total_marks", "totalMarks")))
        earned_marks = max(0, safe_int(_pick(raw, "earned_marks", "earnedMarks")))

        raw_score = _pick(raw, "score", "accuracy")
        if raw_score is not None:
            score = safe_number(raw_score)
        elif total_marks > 0:
            score = earned_marks / total_marks * 100.0
        else:
            score = 0.0

        return cls(
            id=safe_text(_pick(raw, "id", "attempt_id", "attemptId")),
            quiz_id=safe_text(_pick(raw, "quiz_id", "quizId")),
            quiz_title=safe_text(_pick(raw, "quiz_title", "quizTitle", "title")),
            score=min(100.0, max(0.0, score)),
            total_marks=total_marks,
            earned_marks=earned_marks,
            time_spent=max(0, safe_int(_pick(raw, "time_spent", "timeSpent"))),
            completed_at=parse_timestamp(_pick(raw, "completed_at", "completedAt")),
            topic=safe_text(_pick(raw, "topic", "subject")).strip(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the API payload format."""
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "quizTitle": self.quiz_title,
            "score": self.score,
            "totalMarks": self.total_marks,
            "earnedMarks": self.earned_marks,
            "timeSpent": self.time_spent,
            "completedAt": _isoformat(self.completed_at),
            "topic": self.topic or None,
        }


@dataclass(frozen=True)
class QuestionStat:
    """Aggregated answer history of one user for one question."""

    question_id: str
    quiz_id: str = ""
    quiz_title: str = ""
    question_text: str = ""
    topic: str = "General"
    tags: tuple[str, ...] = ()
    difficulty: int = 0
    times_answered: int = 0
    times_correct: int = 0
    streak: int = 0
    average_response_time: float = 0.0  # seconds
    last_answered_at: datetime | None = None
    last_correct: bool | None = None

    # SM-2 scheduling state
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    next_review_at: datetime | None = None

    @property
    def times_incorrect(self) -> int:
        return max(0, self.times_answered - self.times_correct)

    @property
    def accuracy(self) -> float:
        """Question-level accuracy percentage."""
        return question_accuracy(self.times_answered, self.times_correct)

    @property
    def mastery(self) -> MasteryLabel:
        return MasteryLabel.from_stats(self.times_answered, self.times_correct, self.streak)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> QuestionStat:
        """Parse a stat from a store row or API payload."""
        tags = tuple(normalize_tags(raw.get("tags")))
        times_answered = max(0, safe_int(_pick(raw, "times_answered", "timesAnswered")))
        times_correct = min(
            times_answered, max(0, safe_int(_pick(raw, "times_correct", "timesCorrect")))
        )
        last_correct = _pick(raw, "last_correct", "lastCorrect", "is_correct", "isCorrect")

        return cls(
            question_id=safe_text(_pick(raw, "question_id", "questionId")),
            quiz_id=safe_text(_pick(raw, "quiz_id", "quizId")),
            quiz_title=safe_text(_pick(raw, "quiz_title", "quizTitle")),
            question_text=safe_text(_pick(raw, "question_text", "questionText")),
            topic=safe_text(raw.get("topic")).strip() or primary_topic(tags),
            tags=tags,
            difficulty=safe_int(raw.get("difficulty")),
            times_answered=times_answered,
            times_correct=times_correct,
            streak=max(0, safe_int(raw.get("streak"))),
            average_response_time=max(
                0.0, safe_number(_pick(raw, "average_response_time", "averageResponseTime"))
            ),
            last_answered_at=parse_timestamp(_pick(raw, "last_answered_at", "lastAnsweredAt")),
            last_correct=safe_bool(last_correct),
            ease_factor=safe_number(_pick(raw, "ease_factor", "easeFactor"), 2.5),
            interval_days=max(0, safe_int(_pick(raw, "interval_days", "interval"))),
            repetitions=max(0, safe_int(raw.get("repetitions"))),
            next_review_at=parse_timestamp(_pick(raw, "next_review_at", "nextReviewAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the API payload format."""
        return {
            "questionId": self.question_id,
            "quizId": self.quiz_id,
            "quizTitle": self.quiz_title,
            "questionText": self.question_text,
            "topic": self.topic,
            "tags": list(self.tags),
            "difficulty": self.difficulty,
            "timesAnswered": self.times_answered,
            "timesCorrect": self.times_correct,
            "timesIncorrect": self.times_incorrect,
            "streak": self.streak,
            "averageResponseTime": self.average_response_time,
            "lastAnsweredAt": _isoformat(self.last_answered_at),
            "lastCorrect": self.last_correct,
            "easeFactor": self.ease_factor,
            "interval": self.interval_days,
            "repetitions": self.repetitions,
            "nextReviewAt": _isoformat(self.next_review_at),
            "mastery": self.mastery.value,
        }


@dataclass(frozen=True)
class OptionPayload:
    """An answer option of a multiple-choice question."""

    id: str
    text: str
    is_correct: bool = False
    order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "isCorrect": self.is_correct, "order": self.order}


@dataclass(frozen=True)
class QuestionPayload:
    """Question content embedded in review queue items."""

    id: str
    quiz_id: str = ""
    type: str = "mcq"
    prompt: str = ""
    difficulty: int = 0
    marks: int = 1
    explanation: str | None = None
    correct_answer: str | None = None
    tags: tuple[str, ...] = ()
    options: tuple[OptionPayload, ...] = field(default_factory=tuple)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> QuestionPayload:
        options = raw.get("options")
        parsed_options = tuple(
            OptionPayload(
                id=safe_text(option.get("id")),
                text=safe_text(option.get("text")),
                is_correct=safe_bool(_pick(option, "is_correct", "isCorrect"), False),
                order=safe_int(option.get("order")),
            )
            for option in (options if isinstance(options, list) else [])
            if isinstance(option, Mapping)
        )
        explanation = raw.get("explanation")
        correct_answer = _pick(raw, "correct_answer", "correctAnswer")
        return cls(
            id=safe_text(raw.get("id")),
            quiz_id=safe_text(_pick(raw, "quiz_id", "quizId")),
            type=safe_text(raw.get("type"), "mcq"),
            prompt=safe_text(_pick(raw, "prompt", "question")),
            difficulty=safe_int(raw.get("difficulty")),
            marks=safe_int(raw.get("marks"), 1),
            explanation=safe_text(explanation) if explanation is not None else None,
            correct_answer=safe_text(correct_answer) if correct_answer is not None else None,
            tags=tuple(normalize_tags(raw.get("tags"))),
            options=parsed_options,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "type": self.type,
            "question": self.prompt,
            "difficulty": self.difficulty,
            "marks": self.marks,
            "explanation": self.explanation,
            "correctAnswer": self.correct_answer,
            "tags": list(self.tags),
            "options": [option.to_dict() for option in self.options],
        }
