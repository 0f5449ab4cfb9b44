"""
Core Mastery Module.

Classifies a question's review urgency from its answer history.

Design:
- MasteryLabel: Enum for the four mastery states (New, Learning, Struggling, Mastered)
- question_accuracy: Percentage of correct answers for one question
- calculate_days_since: Elapsed days between two timestamps
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

MASTERED_MIN_STREAK = 3
MASTERED_MIN_ACCURACY = 80.0
STRUGGLING_MAX_ACCURACY = 50.0


class MasteryLabel(str, Enum):
    """
    Mastery label for a single question.

    NEW         - never answered
    MASTERED    - 3+ consecutive correct answers and 80%+ accuracy
    STRUGGLING  - under 50% accuracy
    LEARNING    - everything in between
    """

    NEW = "new"
    LEARNING = "learning"
    STRUGGLING = "struggling"
    MASTERED = "mastered"

    @classmethod
    def from_stats(cls, times_answered: int, times_correct: int, streak: int) -> MasteryLabel:
        """
        Derive the label from answer counters.

        Args:
            times_answered: Total answers given
            times_correct: Correct answers given
            streak: Consecutive correct answers ending with the latest one

        Returns:
            Corresponding MasteryLabel
        """
        if times_answered <= 0:
            return cls.NEW
        accuracy = question_accuracy(times_answered, times_correct)
        if streak >= MASTERED_MIN_STREAK and accuracy >= MASTERED_MIN_ACCURACY:
            return cls.MASTERED
        if accuracy < STRUGGLING_MAX_ACCURACY:
            return cls.STRUGGLING
        return cls.LEARNING

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLabel.NEW: "dim",
            MasteryLabel.LEARNING: "yellow",
            MasteryLabel.STRUGGLING: "red",
            MasteryLabel.MASTERED: "green",
        }[self]


def question_accuracy(times_answered: int, times_correct: int) -> float:
    """Accuracy percentage (0-100); 0 when never answered."""
    if times_answered <= 0:
        return 0.0
    correct = min(max(times_correct, 0), times_answered)
    return correct / times_answered * 100.0


def calculate_days_since(last_seen: datetime | None, now: datetime | None = None) -> float | None:
    """
    Calculate days elapsed since a timestamp.

    Args:
        last_seen: Timestamp (naive values are treated as UTC)
        now: Current time (defaults to UTC now)

    Returns:
        Days elapsed as float, or None when never seen
    """
    if last_seen is None:
        return None

    if now is None:
        now = datetime.now(timezone.utc)

    if last_seen.tzinfo is None:
        last_seen = last_seen.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return (now - last_seen).total_seconds() / 86400.0
