"""
Unit tests for review submission and attempt payload validation.
"""

from datetime import datetime, timezone

import pytest

from companion.errors import ValidationError
from companion.review.payloads import CompletedAttempt, ReviewSubmission


class TestReviewSubmission:
    """Tests for ReviewSubmission.from_payload()."""

    def test_camel_case_payload(self):
        submission = ReviewSubmission.from_payload(
            {
                "questionId": "q1",
                "isCorrect": True,
                "responseTime": 4.5,
                "selectedOptionId": "q1-a",
                "quality": 5,
                "submissionId": "sub-1",
            }
        )

        assert submission.question_id == "q1"
        assert submission.is_correct is True
        assert submission.response_time == 4.5
        assert submission.selected_option_id == "q1-a"
        assert submission.quality == 5
        assert submission.submission_id == "sub-1"

    def test_snake_case_and_defaults(self):
        submission = ReviewSubmission.from_payload({"question_id": "q2", "is_correct": False})

        assert submission.question_id == "q2"
        assert submission.response_time == 0.0
        assert submission.quality is None
        assert submission.submission_id is None

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"isCorrect": True}, "questionId"),
            ({"questionId": "  ", "isCorrect": True}, "questionId"),
            ({"questionId": 12, "isCorrect": True}, "questionId"),
            ({"questionId": "q1"}, "isCorrect"),
            ({"questionId": "q1", "isCorrect": "yes"}, "isCorrect"),
            ({"questionId": "q1", "isCorrect": True, "responseTime": -1}, "responseTime"),
            ({"questionId": "q1", "isCorrect": True, "responseTime": "slow"}, "responseTime"),
            ({"questionId": "q1", "isCorrect": True, "quality": 6}, "quality"),
            ({"questionId": "q1", "isCorrect": True, "quality": 2.5}, "quality"),
            ({"questionId": "q1", "isCorrect": True, "quality": True}, "quality"),
        ],
    )
    def test_invalid_payloads(self, payload, field):
        with pytest.raises(ValidationError) as exc_info:
            ReviewSubmission.from_payload(payload)

        assert exc_info.value.field == field

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            ReviewSubmission.from_payload(["q1", True])


class TestCompletedAttempt:
    """Tests for CompletedAttempt.from_payload()."""

    def test_grades_answers(self):
        attempt = CompletedAttempt.from_payload(
            {
                "quizId": "quiz-1",
                "quizTitle": "Cell Biology",
                "completedAt": "2025-03-10T12:00:00Z",
                "answers": [
                    {"questionId": "q1", "isCorrect": True, "responseTime": 10, "marks": 2},
                    {"questionId": "q2", "isCorrect": False, "responseTime": 20},
                    {"questionId": "q3", "isCorrect": True, "responseTime": 5},
                ],
            }
        )

        assert attempt.total_marks == 4
        assert attempt.earned_marks == 3
        assert attempt.score == 75.0
        assert attempt.time_spent == 35  # sum of response times
        assert attempt.completed_at == datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert attempt.mode == "standard"

    def test_explicit_time_spent(self):
        attempt = CompletedAttempt.from_payload(
            {
                "quizId": "quiz-1",
                "timeSpent": 300,
                "answers": [{"questionId": "q1", "isCorrect": True, "responseTime": 10}],
            }
        )

        assert attempt.time_spent == 300

    @pytest.mark.parametrize(
        "payload",
        [
            {"quizId": "quiz-1", "answers": []},
            {"quizId": "quiz-1"},
            {"answers": [{"questionId": "q1", "isCorrect": True}]},
            {"quizId": "quiz-1", "answers": ["q1"]},
            {"quizId": "quiz-1", "answers": [{"questionId": "q1"}]},
            {"quizId": "quiz-1", "completedAt": "yesterday", "answers": [{"questionId": "q1", "isCorrect": True}]},
        ],
    )
    def test_invalid_attempts(self, payload):
        with pytest.raises(ValidationError):
            CompletedAttempt.from_payload(payload)

    def test_to_quiz_attempt(self):
        attempt = CompletedAttempt.from_payload(
            {
                "quizId": "quiz-1",
                "topic": "Biology",
                "answers": [
                    {"questionId": "q1", "isCorrect": True},
                    {"questionId": "q2", "isCorrect": False},
                ],
            }
        )
        recorded = attempt.to_quiz_attempt("attempt-9")

        assert recorded.id == "attempt-9"
        assert recorded.score == 50.0
        assert recorded.topic == "Biology"
        assert recorded.is_completed
