"""
SM-2 Spaced Repetition Scheduler.

Updates a question's scheduling state after each review.

SM-2 Quality Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall

A failed review (quality < 3) resets repetitions and keeps the easiness factor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from companion.core.coercion import ensure_utc, utcnow
from companion.core.records import QuestionStat

QUALITY_CORRECT = 4
QUALITY_INCORRECT = 1


@dataclass(frozen=True)
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    mastered_repetitions: int = 3


class ReviewStatus(str, Enum):
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


@dataclass(frozen=True)
class SM2State:
    """Scheduling state of one question."""

    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    next_review_at: datetime | None = None
    status: ReviewStatus = ReviewStatus.LEARNING


def quality_for(is_correct: bool) -> int:
    """Default quality when the client does not grade its own answer."""
    return QUALITY_CORRECT if is_correct else QUALITY_INCORRECT


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each question has:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive successful reviews
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def calculate_next_review(
        self,
        state: SM2State,
        quality: int,
        now: datetime | None = None,
    ) -> SM2State:
        """
        Calculate the next review based on quality.

        Args:
            state: Current SM-2 state
            quality: Review quality (0-5, clamped)
            now: Review time (defaults to UTC now)

        Returns:
            New SM2State with interval, next_review_at and status
        """
        quality = min(5, max(0, int(quality)))
        now = ensure_utc(now) if now is not None else utcnow()
        ease_factor = max(self.config.minimum_easiness, state.ease_factor)

        if quality >= 3:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = self.config.first_interval
            elif repetitions == 2:
                interval = self.config.second_interval
            else:
                interval = round(max(state.interval_days, 1) * ease_factor)

            # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
            ease_factor += 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
            ease_factor = max(self.config.minimum_easiness, ease_factor)
        else:
            repetitions = 0
            interval = self.config.first_interval

        return SM2State(
            ease_factor=round(ease_factor, 4),
            interval_days=interval,
            repetitions=repetitions,
            next_review_at=now + timedelta(days=interval),
            status=self.status_for(repetitions),
        )

    def status_for(self, repetitions: int) -> ReviewStatus:
        if repetitions <= 0:
            return ReviewStatus.LEARNING
        if repetitions < self.config.mastered_repetitions:
            return ReviewStatus.REVIEWING
        return ReviewStatus.MASTERED


def apply_review(
    stat: QuestionStat,
    *,
    is_correct: bool,
    response_time: float,
    quality: int | None = None,
    now: datetime | None = None,
    scheduler: SM2Scheduler | None = None,
) -> QuestionStat:
    """
    Fold one answer into a question's stat.

    Increments the counters, extends or breaks the streak, updates the running
    average response time and reschedules with SM-2.

    Args:
        stat: Current stat (a fresh QuestionStat for a first answer)
        is_correct: Whether the answer was correct
        response_time: Seconds taken to answer
        quality: SM-2 quality; derived from correctness when omitted
        now: Answer time (defaults to UTC now)
        scheduler: SM-2 scheduler (default configuration if None)

    Returns:
        Updated QuestionStat
    """
    now = ensure_utc(now) if now is not None else utcnow()
    scheduler = scheduler or SM2Scheduler()
    if quality is None:
        quality = quality_for(is_correct)

    times_answered = stat.times_answered + 1
    average = (stat.average_response_time * stat.times_answered + max(0.0, response_time)) / times_answered

    state = scheduler.calculate_next_review(
        SM2State(
            ease_factor=stat.ease_factor,
            interval_days=stat.interval_days,
            repetitions=stat.repetitions,
        ),
        quality,
        now,
    )

    return replace(
        stat,
        times_answered=times_answered,
        times_correct=stat.times_correct + (1 if is_correct else 0),
        streak=stat.streak + 1 if is_correct else 0,
        average_response_time=round(average, 3),
        last_answered_at=now,
        last_correct=is_correct,
        ease_factor=state.ease_factor,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        next_review_at=state.next_review_at,
    )
