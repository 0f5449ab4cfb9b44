"""
Attempt Store adapters.

- AttemptStore: async interface used by the review service
- SqlAttemptStore: local PostgreSQL/SQLite database
- AttemptStoreClient: remote store over HTTP
"""

from .base import AttemptStore

__all__ = ["AttemptStore"]
