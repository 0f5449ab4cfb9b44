"""
Core domain types shared by analytics, review scheduling and storage.
"""

from .coercion import parse_timestamp, safe_int, safe_number, safe_text
from .mastery import MasteryLabel
from .records import OptionPayload, QuestionPayload, QuestionStat, QuizAttempt
from .tags import normalize_tags, primary_topic

__all__ = [
    "MasteryLabel",
    "OptionPayload",
    "QuestionPayload",
    "QuestionStat",
    "QuizAttempt",
    "normalize_tags",
    "parse_timestamp",
    "primary_topic",
    "safe_int",
    "safe_number",
    "safe_text",
]
