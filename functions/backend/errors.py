"""
Error taxonomy for the backend services.

Only UpstreamFetchError, ValidationError and StorageError are meant to reach
HTTP callers; GenerationError and CacheUnavailable are absorbed by the
services that raise them.
"""

from __future__ import annotations

from typing import Optional


class UpstreamFetchError(Exception):
    """The seismic feed was unreachable or returned a non-success response."""


class GenerationError(Exception):
    """The analysis model failed or returned a non-conforming payload."""


class CacheUnavailable(Exception):
    """The cache backing store errored on get or set."""


class StorageError(Exception):
    """Alert preferences could not be persisted."""


class ValidationError(ValueError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class IdentityConflictError(ValidationError):
    """Phone number and email resolve to two different subscriptions."""
