"""
Domain Errors

Every failure that reaches an API client is one of these. Each carries a
machine-readable ``code`` that the HTTP layer puts into the error envelope
next to the human-readable message:

    {"error": true, "message": "Failed to fetch quotes: ...", "code": "UPSTREAM_FETCH_FAILED"}

Error kinds:
    - UpstreamError: the market data provider failed (network, invalid symbol,
      provider-side error, malformed response; not distinguished)
    - UpstreamTimeoutError: the provider did not answer within REQUEST_TIMEOUT
    - InvalidPeriodError: a period/date query parameter could not be parsed
"""

import asyncio


class UpstreamError(Exception):
    """
    A provider call for a logical operation failed.

    Attributes:
        operation: Logical operation name ("quotes", "historical", ...)
        message: Underlying error message
        code: Machine-readable error code
    """

    code = "UPSTREAM_FETCH_FAILED"

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"Failed to fetch {operation}: {message}")

    @classmethod
    def wrap(cls, operation: str, exc: BaseException) -> "UpstreamError":
        """Build the matching error kind for an exception raised by the provider."""
        if isinstance(exc, UpstreamError):
            return exc
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
            return UpstreamTimeoutError(operation, str(exc) or "request timed out")
        return cls(operation, str(exc) or exc.__class__.__name__)


class UpstreamTimeoutError(UpstreamError):
    """The provider did not respond within the configured request timeout."""

    code = "UPSTREAM_TIMEOUT"


class InvalidPeriodError(ValueError):
    """A period or date range query parameter is malformed."""

    code = "INVALID_PARAMETER"
