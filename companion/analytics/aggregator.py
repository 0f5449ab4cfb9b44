"""
Analytics Aggregator.

Reduces a user's quiz attempts into the dashboard views:
- Summary (quizzes taken, questions answered, overall accuracy, time per question)
- Topic performance, split into strengths and areas to improve
- Recent activity (newest first)
- Per-quiz performance
- Study streaks (consecutive study days)

Everything here is a pure function of its input. Malformed attempt records
degrade to zeroed fields instead of raising.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger

from companion.core.coercion import ensure_utc, utcnow
from companion.core.records import QuizAttempt
from companion.core.tags import DEFAULT_TOPIC

# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True)
class AnalyticsPolicy:
    """Thresholds for classifying topics and sizing the activity feed."""

    strength_threshold: float = 80.0  # accuracy >= this is a strength
    improvement_threshold: float = 50.0  # accuracy < this needs improvement
    recent_activity_limit: int = 10


# =============================================================================
# Report Types
# =============================================================================


@dataclass(frozen=True)
class AnalyticsSummary:
    total_quizzes_taken: int = 0
    total_questions_answered: int = 0
    overall_accuracy: int = 0
    avg_time_per_question: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalQuizzesTaken": self.total_quizzes_taken,
            "totalQuestionsAnswered": self.total_questions_answered,
            "overallAccuracy": self.overall_accuracy,
            "avgTimePerQuestion": self.avg_time_per_question,
        }


@dataclass(frozen=True)
class TopicPerformance:
    topic: str
    accuracy: int
    attempt_count: int
    questions_answered: int
    avg_time_seconds: int
    classification: str  # "strength", "improve" or "neutral"

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "accuracy": self.accuracy,
            "attemptCount": self.attempt_count,
            "questionsAnswered": self.questions_answered,
            "avgTimeSeconds": self.avg_time_seconds,
            "classification": self.classification,
        }


@dataclass(frozen=True)
class RecentActivity:
    date: str
    quiz_title: str
    topic: str
    score: int
    max_score: int
    accuracy: int
    completed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "quizTitle": self.quiz_title,
            "topic": self.topic,
            "score": self.score,
            "maxScore": self.max_score,
            "accuracy": self.accuracy,
            "completedAt": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class QuizPerformance:
    quiz_id: str
    quiz_title: str
    topic: str
    attempts: int
    average_accuracy: int
    best_accuracy: int
    latest_accuracy: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "quizTitle": self.quiz_title,
            "topic": self.topic,
            "attempts": self.attempts,
            "averageAccuracy": self.average_accuracy,
            "bestAccuracy": self.best_accuracy,
            "latestAccuracy": self.latest_accuracy,
        }


@dataclass(frozen=True)
class StudyStreak:
    current: int = 0
    longest: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"current": self.current, "longest": self.longest}


@dataclass(frozen=True)
class AnalyticsReport:
    summary: AnalyticsSummary = field(default_factory=AnalyticsSummary)
    topic_performance: list[TopicPerformance] = field(default_factory=list)
    strengths: list[TopicPerformance] = field(default_factory=list)
    areas_to_improve: list[TopicPerformance] = field(default_factory=list)
    recent_activity: list[RecentActivity] = field(default_factory=list)
    quiz_performance: list[QuizPerformance] = field(default_factory=list)
    streak: StudyStreak = field(default_factory=StudyStreak)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "topicPerformance": [t.to_dict() for t in self.topic_performance],
            "strengths": [t.to_dict() for t in self.strengths],
            "areasToImprove": [t.to_dict() for t in self.areas_to_improve],
            "recentActivity": [a.to_dict() for a in self.recent_activity],
            "quizPerformance": [q.to_dict() for q in self.quiz_performance],
            "streak": self.streak.to_dict(),
        }


# =============================================================================
# Helpers
# =============================================================================


def calculate_accuracy(correct: float, total: float) -> int:
    """Rounded percentage; 0 when total is 0."""
    if not total:
        return 0
    return round(correct / total * 100)


def calculate_weighted_average(values: Iterable[tuple[float, float]]) -> float:
    """
    Weighted mean of (value, weight) pairs.

    Falls back to the plain mean when every weight is 0, and to 0 for no input.
    """
    pairs = list(values)
    if not pairs:
        return 0.0
    total_weight = sum(weight for _, weight in pairs)
    if total_weight <= 0:
        return sum(value for value, _ in pairs) / len(pairs)
    return sum(value * weight for value, weight in pairs) / total_weight


def format_relative_date(moment: datetime, now: datetime | None = None) -> str:
    """Format a timestamp for the activity feed ("Just now", "5m ago", ...)."""
    now = ensure_utc(now) if now is not None else utcnow()
    moment = ensure_utc(moment)
    seconds = (now - moment).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return moment.date().isoformat()


def coerce_attempts(raw_attempts: Iterable[Any] | None) -> list[QuizAttempt]:
    """Parse attempts, skipping entries that are not records at all."""
    attempts: list[QuizAttempt] = []
    skipped = 0
    for raw in raw_attempts or []:
        if isinstance(raw, QuizAttempt):
            attempts.append(raw)
        elif isinstance(raw, Mapping):
            attempts.append(QuizAttempt.from_raw(raw))
        else:
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} malformed attempt record(s)")
    return attempts


def _topic_of(attempt: QuizAttempt) -> str:
    return attempt.topic or DEFAULT_TOPIC


def _classify(accuracy: float, policy: AnalyticsPolicy) -> str:
    if accuracy >= policy.strength_threshold:
        return "strength"
    if accuracy < policy.improvement_threshold:
        return "improve"
    return "neutral"


# =============================================================================
# Aggregations
# =============================================================================


def calculate_summary(attempts: list[QuizAttempt]) -> AnalyticsSummary:
    """Summary over completed attempts (zeroed when there are none)."""
    completed = [a for a in attempts if a.is_completed]
    if not completed:
        return AnalyticsSummary()

    total_questions = sum(a.total_marks for a in completed)
    total_time = sum(a.time_spent for a in completed)
    overall = calculate_weighted_average((a.score, a.total_marks) for a in completed)

    return AnalyticsSummary(
        total_quizzes_taken=len(completed),
        total_questions_answered=total_questions,
        overall_accuracy=min(100, max(0, round(overall))),
        avg_time_per_question=round(total_time / total_questions) if total_questions else 0,
    )


def calculate_topic_performance(
    attempts: list[QuizAttempt],
    policy: AnalyticsPolicy | None = None,
) -> list[TopicPerformance]:
    """One entry per topic; accuracy is the mean score of that topic's attempts."""
    policy = policy or AnalyticsPolicy()
    grouped: dict[str, list[QuizAttempt]] = defaultdict(list)
    for attempt in attempts:
        if attempt.is_completed:
            grouped[_topic_of(attempt)].append(attempt)

    performance = []
    for topic, topic_attempts in grouped.items():
        accuracy = round(sum(a.score for a in topic_attempts) / len(topic_attempts))
        questions = sum(a.total_marks for a in topic_attempts)
        total_time = sum(a.time_spent for a in topic_attempts)
        performance.append(
            TopicPerformance(
                topic=topic,
                accuracy=accuracy,
                attempt_count=len(topic_attempts),
                questions_answered=questions,
                avg_time_seconds=round(total_time / questions) if questions else 0,
                classification=_classify(accuracy, policy),
            )
        )

    performance.sort(key=lambda t: (-t.accuracy, t.topic))
    return performance


def format_recent_activity(
    attempts: list[QuizAttempt],
    limit: int = 10,
    now: datetime | None = None,
) -> list[RecentActivity]:
    """The most recent completed attempts, newest first."""
    if limit <= 0:
        return []
    completed = sorted(
        (a for a in attempts if a.is_completed),
        key=lambda a: a.completed_at,
        reverse=True,
    )
    return [
        RecentActivity(
            date=format_relative_date(a.completed_at, now),
            quiz_title=a.quiz_title or "Unknown Quiz",
            topic=_topic_of(a),
            score=a.earned_marks,
            max_score=a.total_marks,
            accuracy=round(a.score),
            completed_at=a.completed_at,
        )
        for a in completed[:limit]
    ]


def calculate_quiz_performance(attempts: list[QuizAttempt]) -> list[QuizPerformance]:
    """Per-quiz attempt counts with average, best and latest accuracy."""
    grouped: dict[str, list[QuizAttempt]] = defaultdict(list)
    for attempt in attempts:
        if attempt.is_completed:
            grouped[attempt.quiz_id or attempt.quiz_title].append(attempt)

    results = []
    for quiz_id, quiz_attempts in grouped.items():
        quiz_attempts.sort(key=lambda a: a.completed_at, reverse=True)
        latest = quiz_attempts[0]
        scores = [a.score for a in quiz_attempts]
        results.append(
            (
                latest.completed_at,
                QuizPerformance(
                    quiz_id=quiz_id,
                    quiz_title=latest.quiz_title or "Unknown Quiz",
                    topic=_topic_of(latest),
                    attempts=len(quiz_attempts),
                    average_accuracy=round(sum(scores) / len(scores)),
                    best_accuracy=round(max(scores)),
                    latest_accuracy=round(latest.score),
                ),
            )
        )

    results.sort(key=lambda pair: pair[0], reverse=True)
    return [performance for _, performance in results]


def calculate_streak(attempts: list[QuizAttempt], today: date | None = None) -> StudyStreak:
    """
    Current and longest run of consecutive study days.

    The current streak only counts when the last study day is today or yesterday.
    """
    days = sorted({a.completed_at.date() for a in attempts if a.is_completed}, reverse=True)
    if not days:
        return StudyStreak()

    today = today or utcnow().date()

    longest = run = 1
    for newer, older in zip(days, days[1:]):
        if newer - older == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    current = 0
    if (today - days[0]).days <= 1:
        current = 1
        for newer, older in zip(days, days[1:]):
            if newer - older != timedelta(days=1):
                break
            current += 1

    return StudyStreak(current=current, longest=max(longest, current))


def aggregate_analytics(
    raw_attempts: Iterable[Any] | None,
    policy: AnalyticsPolicy | None = None,
    now: datetime | None = None,
) -> AnalyticsReport:
    """
    Build the full analytics report for a sequence of attempts.

    Args:
        raw_attempts: QuizAttempt objects or raw mappings (may be empty)
        policy: Topic thresholds and activity feed size
        now: Reference time for relative dates and streaks

    Returns:
        AnalyticsReport (all zeros and empty lists for no attempts)
    """
    policy = policy or AnalyticsPolicy()
    now = ensure_utc(now) if now is not None else utcnow()
    attempts = coerce_attempts(raw_attempts)

    topic_performance = calculate_topic_performance(attempts, policy)

    return AnalyticsReport(
        summary=calculate_summary(attempts),
        topic_performance=topic_performance,
        strengths=[t for t in topic_performance if t.classification == "strength"],
        areas_to_improve=[t for t in topic_performance if t.classification == "improve"],
        recent_activity=format_recent_activity(attempts, policy.recent_activity_limit, now),
        quiz_performance=calculate_quiz_performance(attempts),
        streak=calculate_streak(attempts, now.date()),
    )
