"""
Review Queue Builder.

Selects and orders the questions a user should revisit, from their
per-question answer history.

Each question gets at most one label, the highest that applies:
1. Needs Review   - last answer was wrong
2. Weak Topic     - the question's topic is below the weak-topic threshold
3. Due for Review - stale, SM-2 due, or never answered

Questions that match no label are left out of the queue.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from companion.core.coercion import ensure_utc, utcnow
from companion.core.mastery import calculate_days_since
from companion.core.records import QuestionPayload, QuestionStat

# Priority weights (informational score, tier order is decided by label)
WEIGHT_INCORRECT = 50
WEIGHT_WEAK_TOPIC = 30
WEIGHT_TIME_DECAY = 20
WEIGHT_FAST_GUESS = 10
WEIGHT_FEW_ATTEMPTS = 15
WEIGHT_LOW_ACCURACY = 25

FEW_ATTEMPTS_THRESHOLD = 3
LOW_ACCURACY_THRESHOLD = 50.0


@dataclass(frozen=True)
class ReviewPolicy:
    """Thresholds used to label questions."""

    weak_topic_threshold: float = 70.0  # topic accuracy below this is weak
    recency_days: float = 3.0  # not answered within this window is stale
    fast_guess_seconds: float = 3.0


class ReviewLabel(str, Enum):
    """Queue labels, declared in tier order."""

    NEEDS_REVIEW = "Needs Review"
    WEAK_TOPIC = "Weak Topic"
    DUE_FOR_REVIEW = "Due for Review"

    @property
    def tier(self) -> int:
        return list(ReviewLabel).index(self)

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            ReviewLabel.NEEDS_REVIEW: "red",
            ReviewLabel.WEAK_TOPIC: "yellow",
            ReviewLabel.DUE_FOR_REVIEW: "cyan",
        }[self]


@dataclass(frozen=True)
class SpacedReviewItem:
    """A question selected for review, with its label and embedded content."""

    stat: QuestionStat
    label: ReviewLabel
    priority_score: int = 0
    days_since_review: float | None = None
    question: QuestionPayload | None = None

    @property
    def question_id(self) -> str:
        return self.stat.question_id

    def with_question(self, question: QuestionPayload | None) -> SpacedReviewItem:
        return replace(self, question=question)

    def to_dict(self) -> dict[str, Any]:
        data = self.stat.to_dict()
        data.update(
            {
                "label": self.label.value,
                "accuracy": round(self.stat.accuracy, 1),
                "priorityScore": self.priority_score,
                "daysSinceReview": (
                    round(self.days_since_review, 2) if self.days_since_review is not None else None
                ),
                "question": self.question.to_dict() if self.question is not None else None,
            }
        )
        return data


# =============================================================================
# Helpers
# =============================================================================


def coerce_stats(raw_stats: Iterable[Any] | None) -> list[QuestionStat]:
    """Parse stats, dropping entries without a question id."""
    stats: list[QuestionStat] = []
    skipped = 0
    for raw in raw_stats or []:
        if isinstance(raw, QuestionStat):
            stat = raw
        elif isinstance(raw, Mapping):
            stat = QuestionStat.from_raw(raw)
        else:
            skipped += 1
            continue
        if not stat.question_id:
            skipped += 1
            continue
        stats.append(stat)
    if skipped:
        logger.warning(f"Skipped {skipped} malformed question stat record(s)")
    return stats


def _recency_key(stat: QuestionStat) -> float:
    if stat.last_answered_at is None:
        return float("-inf")
    return stat.last_answered_at.timestamp()


def dedupe_latest(stats: Iterable[QuestionStat]) -> list[QuestionStat]:
    """Keep only the most recently answered record per question id."""
    latest: dict[str, QuestionStat] = {}
    for stat in stats:
        current = latest.get(stat.question_id)
        if current is None or _recency_key(stat) > _recency_key(current):
            latest[stat.question_id] = stat
    return list(latest.values())


def calculate_topic_accuracy(stats: Iterable[QuestionStat]) -> dict[str, float]:
    """Per-topic accuracy: total correct / total answered x 100."""
    answered: dict[str, int] = defaultdict(int)
    correct: dict[str, int] = defaultdict(int)
    for stat in stats:
        answered[stat.topic] += stat.times_answered
        correct[stat.topic] += stat.times_correct

    # Topics with no answers yet have no accuracy and are never weak
    return {
        topic: correct[topic] / total * 100.0 for topic, total in answered.items() if total > 0
    }


def _last_incorrect(stat: QuestionStat) -> bool:
    if stat.last_correct is not None:
        return not stat.last_correct
    # Without an explicit flag a broken streak after answering means a miss
    return stat.times_answered > 0 and stat.streak == 0 and stat.times_incorrect > 0


def _is_due(stat: QuestionStat, days_since: float | None, policy: ReviewPolicy, now: datetime) -> bool:
    if days_since is None or days_since > policy.recency_days:
        return True
    return stat.next_review_at is not None and ensure_utc(stat.next_review_at) <= now


def classify_question(
    stat: QuestionStat,
    topic_accuracy: Mapping[str, float],
    policy: ReviewPolicy,
    now: datetime,
) -> ReviewLabel | None:
    """Highest applicable label, or None when the question needs no review."""
    if _last_incorrect(stat):
        return ReviewLabel.NEEDS_REVIEW

    accuracy = topic_accuracy.get(stat.topic)
    if accuracy is not None and accuracy < policy.weak_topic_threshold:
        return ReviewLabel.WEAK_TOPIC

    if _is_due(stat, calculate_days_since(stat.last_answered_at, now), policy, now):
        return ReviewLabel.DUE_FOR_REVIEW

    return None


def priority_score(
    stat: QuestionStat,
    topic_accuracy: Mapping[str, float],
    policy: ReviewPolicy,
    now: datetime,
) -> int:
    """Additive urgency score shown alongside the label."""
    score = 0
    if _last_incorrect(stat):
        score += WEIGHT_INCORRECT

    accuracy = topic_accuracy.get(stat.topic)
    if accuracy is not None and accuracy < policy.weak_topic_threshold:
        score += WEIGHT_WEAK_TOPIC

    days_since = calculate_days_since(stat.last_answered_at, now)
    if days_since is None or days_since > policy.recency_days:
        score += WEIGHT_TIME_DECAY

    if 0 < stat.average_response_time < policy.fast_guess_seconds:
        score += WEIGHT_FAST_GUESS

    if stat.times_answered < FEW_ATTEMPTS_THRESHOLD:
        score += WEIGHT_FEW_ATTEMPTS

    if stat.accuracy < LOW_ACCURACY_THRESHOLD:
        score += WEIGHT_LOW_ACCURACY

    return score


# =============================================================================
# Queue
# =============================================================================


def build_review_queue(
    raw_stats: Iterable[Any] | None,
    limit: int = 20,
    policy: ReviewPolicy | None = None,
    now: datetime | None = None,
) -> list[SpacedReviewItem]:
    """
    Build the ordered review queue for one user.

    Args:
        raw_stats: QuestionStat objects or raw mappings (duplicates allowed)
        limit: Maximum number of items; <= 0 yields an empty queue
        policy: Labeling thresholds
        now: Reference time (defaults to UTC now)

    Returns:
        Items ordered by label tier, then oldest answer first, then question id
    """
    if limit <= 0:
        return []

    policy = policy or ReviewPolicy()
    now = ensure_utc(now) if now is not None else utcnow()

    stats = dedupe_latest(coerce_stats(raw_stats))
    if not stats:
        return []

    topic_accuracy = calculate_topic_accuracy(stats)

    items = []
    for stat in stats:
        label = classify_question(stat, topic_accuracy, policy, now)
        if label is None:
            continue
        items.append(
            SpacedReviewItem(
                stat=stat,
                label=label,
                priority_score=priority_score(stat, topic_accuracy, policy, now),
                days_since_review=calculate_days_since(stat.last_answered_at, now),
            )
        )

    items.sort(key=lambda item: (item.label.tier, _recency_key(item.stat), item.question_id))
    logger.debug(f"Review queue: {len(items)} candidate(s) from {len(stats)} question(s)")
    return items[:limit]


def summarize_queue(items: Iterable[SpacedReviewItem]) -> dict[str, int]:
    """Total and per-label counts for a queue."""
    counts = Counter(item.label for item in items)
    summary = {"total": sum(counts.values())}
    for label in ReviewLabel:
        summary[label.value] = counts.get(label, 0)
    return summary
