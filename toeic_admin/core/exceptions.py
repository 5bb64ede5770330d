"""
Errors raised by the TOEIC admin console.

Everything derives from ``ToeicAdminError`` so commands can print one
readable line; backend failures keep the HTTP status and request path.
"""

from typing import Any, Dict, Optional


class ToeicAdminError(Exception):
    """Base exception for all admin console errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ToeicAdminError):
    """Settings are missing or malformed (bad API URL, non-positive timeout)."""
    pass


class ValidationError(ToeicAdminError):
    """Form input rejected before anything is sent to the backend."""
    pass


class DataAccessError(ToeicAdminError):
    """Reading or writing test-bank data failed."""
    pass


class ApiError(DataAccessError):
    """The REST backend answered with an error or an unsuccessful envelope."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        path: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.path = path


class AuthenticationError(ApiError):
    """No valid session, or the backend rejected the bearer token."""
    pass


class PermissionDeniedError(ApiError):
    """The account is not allowed to use the admin console."""
    pass


class NotFoundError(ApiError):
    """The requested record does not exist."""
    pass


class SessionExpiredError(AuthenticationError):
    """The stored session was idle for longer than the configured timeout."""
    pass


class UploadError(DataAccessError):
    """Image or audio upload failed."""
    pass


class CircuitBreakerError(DataAccessError):
    """The backend breaker is open after repeated connection failures."""
    pass


class SheetParsingError(ToeicAdminError):
    """Spreadsheet reading and validation errors."""
    pass


class PartNotEmptyError(ToeicAdminError):
    """A part still holds questions and cannot be deleted."""

    def __init__(self, message: str, question_count: int, **kwargs):
        super().__init__(message, **kwargs)
        self.question_count = question_count


class BatchOperationError(ToeicAdminError):
    """One or more requests of a fan-out batch failed.

    Requests that succeeded before the failure are not rolled back; ``result``
    carries the per-item outcome.
    """

    def __init__(self, message: str, result=None, **kwargs):
        super().__init__(message, **kwargs)
        self.result = result
