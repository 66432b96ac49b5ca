# src/tracker_sync/core/errors.py

"""
Error taxonomy shared by adapters, the cache and the mutation pipeline.

RemoteCallError is the raw failure shape produced by remote clients (HTTP or SQLite).
Adapters translate it into FetchError on reads; the mutation pipeline translates it
into RemoteWriteError / NotFoundError on writes.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all task-tracker errors."""


class FetchError(TrackerError):
    """Reading the remote source failed (transport, status, or unparseable body)."""


class ValidationError(TrackerError):
    """A required field is missing or a mutation payload is malformed."""


class AuthError(TrackerError):
    """A write needs an authenticated principal and none is present."""


class NotFoundError(TrackerError):
    """The mutation target does not exist."""


class RemoteWriteError(TrackerError):
    """The server rejected a write. The message is the server's when available."""


class UnsupportedOperationError(TrackerError):
    """The backend has no primitive for the requested operation."""


# Postgres "invalid_text_representation": the id does not even parse (e.g. "abc" for a uuid key).
NOT_FOUND_ERROR_CODES: frozenset[str] = frozenset({"22P02"})


class RemoteCallError(Exception):
    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # Backend-specific error code (PostgREST/Postgres SQLSTATE), when the server sends one.
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.code in NOT_FOUND_ERROR_CODES
