# SQLAlchemy models
from .base import Base
from .quiz import (
    Quiz,
    QuizAttemptRow,
    QuizOption,
    QuizQuestion,
    QuizResponse,
    ReviewSubmissionRow,
    UserQuestionStat,
)

__all__ = [
    "Base",
    "Quiz",
    "QuizAttemptRow",
    "QuizOption",
    "QuizQuestion",
    "QuizResponse",
    "ReviewSubmissionRow",
    "UserQuestionStat",
]
