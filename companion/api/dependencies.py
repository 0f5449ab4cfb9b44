"""
Shared FastAPI dependencies.

get_review_service and get_user_id are overridden in tests through
app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from config import get_settings
from companion.errors import CompanionError, NotFoundError, TransportError, ValidationError
from companion.service import ReviewService


def get_review_service(request: Request) -> ReviewService:
    """The service created at startup (built on first use if missing)."""
    service = getattr(request.app.state, "review_service", None)
    if service is None:
        service = ReviewService.from_settings(get_settings())
        request.app.state.review_service = service
    return service


def get_user_id(x_user_id: str | None = Header(None)) -> str:
    """Requesting user from the X-User-Id header, else the configured default."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return get_settings().default_user_id


def to_http_error(error: CompanionError) -> HTTPException:
    """Map subsystem errors to HTTP responses."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransportError):
        return HTTPException(status_code=503, detail="Attempt store unavailable, try again later")
    return HTTPException(status_code=500, detail=str(error))
