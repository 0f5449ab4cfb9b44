"""
Remote Attempt Store client.

Talks to an attempt store over HTTP:
- GET  {base}/users/{user}/attempts
- GET  {base}/users/{user}/question-stats
- POST {base}/questions/lookup
- POST {base}/users/{user}/reviews
- POST {base}/users/{user}/attempts

Connection errors, timeouts and 5xx responses raise TransportError. 4xx
responses map to ValidationError or NotFoundError. Malformed bodies degrade
to empty results with a warning.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from companion.core.records import QuestionPayload, QuestionStat, QuizAttempt
from companion.errors import MalformedResponse, NotFoundError, TransportError, ValidationError
from companion.review.payloads import CompletedAttempt, ReviewOutcome, ReviewSubmission

from .base import AttemptStore


def expect_records(data: Any, key: str) -> list[Mapping[str, Any]]:
    """
    Extract a list of records from a response body.

    Accepts a bare list or an object wrapping the list under `key`.

    Raises:
        MalformedResponse: When no list of records is present
    """
    if isinstance(data, Mapping):
        data = data.get(key)
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected a list of {key}")
    return [item for item in data if isinstance(item, Mapping)]


def expect_record(data: Any, key: str) -> Mapping[str, Any]:
    """Extract one record, either bare or wrapped under `key`."""
    if isinstance(data, Mapping) and isinstance(data.get(key), Mapping):
        return data[key]
    if isinstance(data, Mapping):
        return data
    raise MalformedResponse(f"Expected a {key} object")


class AttemptStoreClient(AttemptStore):
    """HTTP client for a remote attempt store."""

    def __init__(
        self,
        api_url: str,
        timeout_ms: int = 10000,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_url: Base URL of the attempt store API
            timeout_ms: Request timeout in milliseconds
            client: Preconfigured httpx client (a new one is created if None)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_ms / 1000.0
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _user_url(self, user_id: str, path: str) -> str:
        return f"{self.api_url}/users/{quote(user_id, safe='')}/{path}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Send one request and decode the JSON body.

        Retrying is left to the caller; each call is a single attempt.
        """
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.warning(f"Attempt store timeout: {method} {url}")
            raise TransportError(f"Attempt store timed out: {e}") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500:
                logger.warning(f"Attempt store server error {status}: {method} {url}")
                raise TransportError(f"Attempt store returned {status}") from e
            detail = _error_detail(e.response)
            logger.error(f"Attempt store client error {status}: {detail}")
            if status == 404:
                raise NotFoundError(detail or "Not found") from e
            raise ValidationError(detail or f"Rejected with status {status}") from e

        except httpx.RequestError as e:
            logger.warning(f"Attempt store request error: {method} {url}: {e}")
            raise TransportError(f"Attempt store unreachable: {e}") from e

        try:
            return response.json()
        except ValueError:
            logger.warning(f"Attempt store returned a non-JSON body for {method} {url}")
            return None

    # ========================================
    # Reads
    # ========================================

    async def list_attempts(self, user_id: str) -> list[QuizAttempt]:
        data = await self._request("GET", self._user_url(user_id, "attempts"))
        try:
            records = expect_records(data, "attempts")
        except MalformedResponse as e:
            logger.warning(f"Malformed attempts response for {user_id}: {e}")
            return []
        return [QuizAttempt.from_raw(record) for record in records]

    async def list_question_stats(self, user_id: str) -> list[QuestionStat]:
        data = await self._request("GET", self._user_url(user_id, "question-stats"))
        try:
            records = expect_records(data, "stats")
        except MalformedResponse as e:
            logger.warning(f"Malformed question stats response for {user_id}: {e}")
            return []
        return [QuestionStat.from_raw(record) for record in records]

    async def get_questions(self, question_ids: Iterable[str]) -> dict[str, QuestionPayload]:
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return {}
        data = await self._request("POST", f"{self.api_url}/questions/lookup", json={"ids": ids})
        try:
            records = expect_records(data, "questions")
        except MalformedResponse as e:
            logger.warning(f"Malformed question lookup response: {e}")
            return {}
        questions = (QuestionPayload.from_raw(record) for record in records)
        return {question.id: question for question in questions if question.id}

    # ========================================
    # Writes
    # ========================================

    async def record_review(
        self,
        user_id: str,
        submission: ReviewSubmission,
        quality: int,
    ) -> ReviewOutcome:
        payload = submission.to_dict()
        payload["quality"] = quality
        data = await self._request("POST", self._user_url(user_id, "reviews"), json=payload)
        try:
            record = expect_record(data, "stat")
        except MalformedResponse as e:
            logger.warning(f"Malformed review response for {submission.question_id}: {e}")
            record = {}

        stat = QuestionStat.from_raw(record)
        if not stat.question_id:
            stat = QuestionStat.from_raw({**record, "questionId": submission.question_id})
        duplicate = bool(data.get("duplicate")) if isinstance(data, Mapping) else False
        return ReviewOutcome(stat=stat, duplicate=duplicate)

    async def record_attempt(self, user_id: str, attempt: CompletedAttempt) -> QuizAttempt:
        data = await self._request(
            "POST", self._user_url(user_id, "attempts"), json=attempt.to_dict()
        )
        try:
            record = expect_record(data, "attempt")
        except MalformedResponse as e:
            logger.warning(f"Malformed attempt response for quiz {attempt.quiz_id}: {e}")
            record = {}

        recorded = QuizAttempt.from_raw(record)
        if not recorded.id:
            # Store acknowledged without echoing the attempt
            return attempt.to_quiz_attempt("")
        return recorded

    async def health_check(self) -> bool:
        """
        Check if the attempt store is available.

        Returns:
            True if API is healthy, False otherwise
        """
        try:
            response = await self.client.get(f"{self.api_url}/health", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, Mapping):
        for key in ("detail", "message", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return ""
