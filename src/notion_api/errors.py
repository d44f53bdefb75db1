"""Typed exception hierarchy for Notion-related errors.

This module defines all custom exceptions used by the Notion client library.
All exceptions inherit from NotionError base class for easy catching and
include descriptive messages with context to help with debugging.
"""

from enum import Enum
from typing import Optional


class ErrorClass(Enum):
    """Classification of a remote failure, consumed by the retry policy."""

    RATE_LIMITED = "rate_limited"
    CONFLICT = "conflict"
    SERVER_ERROR = "server_error"
    OTHER = "other"


class SyncError(Exception):
    """Base exception for all notion-backup errors.

    Use this to catch any application-level error from the backup tool.
    """
    pass


class NotionError(SyncError):
    """Base exception for all Notion-related errors."""
    pass


class InvalidCredentialsError(NotionError):
    """Raised when the integration token is missing, invalid or lacks access."""

    def __init__(self, endpoint: str, reason: Optional[str] = None):
        message = f"Notion integration token rejected (endpoint: {endpoint})"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.endpoint = endpoint
        self.reason = reason


class ObjectNotFoundError(NotionError):
    """Raised when a requested block, page or database does not exist."""

    def __init__(self, object_id: str):
        super().__init__(f"Object {object_id} not found")
        self.object_id = object_id


class APIUnreachableError(NotionError):
    """Raised when the Notion API is not available or unreachable."""

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint


class RemoteAPIError(NotionError):
    """Raised for any other non-success response from the Notion API.

    Attributes:
        status: HTTP status code of the response
        code: Notion error code from the response body (e.g. "rate_limited")
        classification: ErrorClass used to decide whether to retry
    """

    def __init__(
        self,
        status: int,
        code: Optional[str] = None,
        message: str = "",
        classification: ErrorClass = ErrorClass.OTHER,
    ):
        text = f"Notion API error {status}"
        if code:
            text += f" ({code})"
        if message:
            text += f": {message}"
        super().__init__(text)
        self.status = status
        self.code = code
        self.classification = classification


class RetryExhaustedError(NotionError):
    """Raised when a retryable failure persists for every allowed attempt."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        message = f"Notion API failure (after {attempts} attempts)"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
