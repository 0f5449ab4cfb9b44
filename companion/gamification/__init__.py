"""XP, level and streak rewards for completed reviews."""

from .ports import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .xp import GamificationState, GamificationStore, award_xp, reset_streak, xp_reward

__all__ = [
    "GamificationState",
    "GamificationStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "award_xp",
    "reset_streak",
    "xp_reward",
]
