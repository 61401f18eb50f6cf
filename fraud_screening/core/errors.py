"""
Domain-specific exceptions for the Fraud Screening API.

These exceptions represent request and processing failures and are mapped
to HTTP status codes in the API layer. Anything mapped to a 5xx status is
reported to the caller without its message.
"""

from typing import Any


class FraudScreeningError(Exception):
    """Base exception for all fraud screening domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FraudScreeningError):
    """
    Raised when the request payload is malformed.

    Examples:
    - Body is not a JSON array
    - A transaction has no transaction_id
    - A custom rule names an unknown field or condition

    HTTP Status: 400 Bad Request
    """

    pass


class UnauthorizedError(FraudScreeningError):
    """
    Raised when no authenticated requester identity is present.

    HTTP Status: 401 Unauthorized
    """

    pass


class ForbiddenError(FraudScreeningError):
    """
    Raised when the requester is authenticated but lacks the screening permission.

    HTTP Status: 403 Forbidden
    """

    pass


class DetectionError(FraudScreeningError):
    """
    Raised when the pattern-detection engine cannot produce a verdict.

    Examples:
    - Engine unreachable or timed out
    - Non-2xx response
    - Response body does not describe a verdict

    HTTP Status: 500 Internal Server Error (opaque)
    """

    pass


class ScreeningTimeoutError(FraudScreeningError):
    """
    Raised when a screening group exceeds its deadline.

    HTTP Status: 500 Internal Server Error (opaque)
    """

    pass


ERROR_STATUS_MAP = {
    ValidationError: 400,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    DetectionError: 500,
    ScreeningTimeoutError: 500,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
