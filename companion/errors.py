"""
Error kinds raised by the review and analytics subsystem.

TransportError and ValidationError propagate to callers as a reported error
state. MalformedResponse is recovered locally by substituting defaults.
"""

from __future__ import annotations


class CompanionError(Exception):
    """Base class for all Campus Companion errors."""


class TransportError(CompanionError):
    """The attempt store could not be reached (connection, timeout, 5xx)."""

    def __init__(self, message: str, *, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class MalformedResponse(CompanionError):
    """A payload did not have the expected shape."""


class ValidationError(CompanionError):
    """A submission is missing required fields or carries invalid values."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(CompanionError):
    """A referenced question does not exist."""
