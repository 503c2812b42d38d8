"""Error taxonomy shared by every marketplace operation.

Operations either return their success value or raise exactly one of the
``MarketplaceError`` subclasses below. The HTTP layer maps them to status
codes; other callers branch on the exception type.
"""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Base class for all typed marketplace failures."""

    code: str = "marketplace_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.code,
            "detail": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return body


class AuthenticationRequired(MarketplaceError):
    """No valid session. The caller must sign in."""

    code = "authentication_required"
    status_code = 401

    def __init__(self, message: str = "Sign in to continue", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class AuthorizationDenied(MarketplaceError):
    """Authenticated, but the caller may not perform this action on this target."""

    code = "authorization_denied"
    status_code = 403


class ValidationFailed(MarketplaceError):
    """A required field is missing or empty. The store was not touched."""

    code = "validation_failed"
    status_code = 422


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404


class ConflictOrStale(MarketplaceError):
    """The record changed underneath the caller; re-fetch before retrying."""

    code = "conflict_or_stale"
    status_code = 409


class TransientStoreFailure(MarketplaceError):
    """The backing store could not be reached. Safe to retry with backoff."""

    code = "transient_store_failure"
    status_code = 503
    retryable = True


def require_text(value: str | None, field: str) -> str:
    """Return ``value`` stripped, or raise ValidationFailed when it is blank."""
    if value is None or not value.strip():
        raise ValidationFailed(f"{field} is required", {"field": field})
    return value.strip()
