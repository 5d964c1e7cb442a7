"""Application error taxonomy.

Every error raised across the service boundary carries an ``ErrorKind`` so the
API layer can pick a status code by switching on the kind instead of parsing
message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    AUTHENTICATION = "unauthorized"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration_error"
    DECRYPTION = "decryption_error"
    RATE_LIMIT = "rate_limited"
    UPSTREAM = "upstream_error"
    VALIDATION = "invalid_payload"
    CONFLICT = "conflict"
    INTERNAL = "internal_error"


_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFIGURATION: 400,
    ErrorKind.DECRYPTION: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


def status_for(kind: ErrorKind) -> int:
    """Return the HTTP status code used for an error kind."""
    return _STATUS_BY_KIND.get(kind, 500)


class AppError(Exception):
    """Base class for errors that carry an explicit kind."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details: Dict[str, Any] = dict(details or {})

    @property
    def status_code(self) -> int:
        return status_for(self.kind)

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.kind.value, "message": self.message, **self.details}


class AuthenticationError(AppError):
    """No valid session for the request."""

    kind = ErrorKind.AUTHENTICATION


class NotFoundError(AppError):
    """A referenced entity does not exist for this user."""

    kind = ErrorKind.NOT_FOUND


class ConfigurationError(AppError):
    """A required secret or setting is missing."""

    kind = ErrorKind.CONFIGURATION


class DecryptionError(AppError):
    """A stored secret cannot be decrypted with the current key."""

    kind = ErrorKind.DECRYPTION


class RateLimitError(AppError):
    """The caller exhausted its request quota for the current window."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", *, remaining: int = 0) -> None:
        super().__init__(message, details={"remaining": remaining})
        self.remaining = remaining


class UpstreamError(AppError):
    """GitHub or the language-model provider failed."""

    kind = ErrorKind.UPSTREAM


class ValidationError(AppError):
    """Request input is well-formed JSON but semantically invalid."""

    kind = ErrorKind.VALIDATION


class ConflictError(AppError):
    """The entity is not in a state that allows the operation."""

    kind = ErrorKind.CONFLICT
