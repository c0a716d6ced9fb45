"""Service-level exceptions.

Services raise these instead of `HTTPException` so they stay usable from
scripts and tests; `guesthouse.main` maps them to HTTP responses using
`status_code`.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(ServiceError, ValueError):
    """Malformed or inconsistent input, rejected before any write."""
    status_code = 400


class NotFoundError(ServiceError):
    """The addressed row does not exist."""
    status_code = 404

    def __init__(self, message: str = "Not found", code: Optional[str] = None):
        super().__init__(message, code)


class ConflictError(ServiceError):
    """The write lost against a concurrent change or a uniqueness rule.

    The transaction has been rolled back; callers should reload and retry.
    """
    status_code = 409


class TransientStoreError(ServiceError):
    """Connection or transaction infrastructure failure."""
    status_code = 500

    def __init__(self, message: str = "internal error", code: Optional[str] = None):
        super().__init__(message, code)


class UnsupportedMediaError(ServiceError):
    """Uploaded bytes are not a supported image or document."""
    status_code = 415
