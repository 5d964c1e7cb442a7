# Core module
# Shared error types used across services and routes

from .errors import (
    AppError,
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    DecryptionError,
    ErrorKind,
    NotFoundError,
    RateLimitError,
    UpstreamError,
    ValidationError,
    status_for,
)

__all__ = [
    "AppError",
    "AuthenticationError",
    "ConfigurationError",
    "ConflictError",
    "DecryptionError",
    "ErrorKind",
    "NotFoundError",
    "RateLimitError",
    "UpstreamError",
    "ValidationError",
    "status_for",
]
