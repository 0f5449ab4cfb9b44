"""
Gamification XP Calculator.

XP per review by SM-2 quality:
- 4-5 (easy): 50
- 3   (good): 30
- 2   (hard): 15
- 0-1 (again): 5

Levels are 100 XP each and derive from lifetime XP, so the level never
drifts from the XP actually earned.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from companion.core.coercion import safe_int

from .ports import KeyValueStore

XP_PER_LEVEL = 100
DEFAULT_KEY = "gamification"


def xp_reward(quality: int) -> int:
    """XP granted for a review of the given SM-2 quality."""
    if quality >= 4:
        return 50
    if quality == 3:
        return 30
    if quality == 2:
        return 15
    return 5


@dataclass(frozen=True)
class GamificationState:
    """XP progress of one learner."""

    total_xp: int = 0
    streak: int = 0

    @property
    def level(self) -> int:
        return self.total_xp // XP_PER_LEVEL + 1

    @property
    def xp(self) -> int:
        """XP earned within the current level."""
        return self.total_xp % XP_PER_LEVEL

    @classmethod
    def from_dict(cls, data: Any) -> GamificationState:
        """Parse saved state; anything unusable yields a fresh state."""
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            total_xp=max(0, safe_int(data.get("totalXp", data.get("total_xp")))),
            streak=max(0, safe_int(data.get("streak"))),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "xp": self.xp,
            "level": self.level,
            "totalXp": self.total_xp,
            "streak": self.streak,
        }


def award_xp(state: GamificationState, amount: int, continued: bool = True) -> GamificationState:
    """
    Add XP to a state.

    Args:
        state: Current state
        amount: XP to add (negative amounts are ignored)
        continued: Whether the study streak continues; False resets it

    Returns:
        New GamificationState
    """
    return GamificationState(
        total_xp=state.total_xp + max(0, amount),
        streak=state.streak + 1 if continued else 0,
    )


def reset_streak(state: GamificationState) -> GamificationState:
    return replace(state, streak=0)


class GamificationStore:
    """Loads and saves GamificationState through a key-value port."""

    def __init__(self, port: KeyValueStore, key: str = DEFAULT_KEY):
        self.port = port
        self.key = key

    def load(self) -> GamificationState:
        return GamificationState.from_dict(self.port.get(self.key))

    def save(self, state: GamificationState) -> None:
        self.port.set(self.key, state.to_dict())

    def award(self, amount: int, continued: bool = True) -> GamificationState:
        """Load, add XP and save in one step."""
        before = self.load()
        state = award_xp(before, amount, continued)
        self.save(state)
        if state.level > before.level:
            logger.info(f"Level up: {before.level} -> {state.level}")
        return state

    def reset_streak(self) -> GamificationState:
        state = reset_streak(self.load())
        self.save(state)
        return state
