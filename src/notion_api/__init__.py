"""Notion client library for incremental backups.

This package provides Python abstractions over the Notion REST API,
with typed errors and a shared retry policy for rate limits, conflicts
and server errors.
"""

from .errors import (
    SyncError,
    NotionError,
    ErrorClass,
    InvalidCredentialsError,
    ObjectNotFoundError,
    APIUnreachableError,
    RemoteAPIError,
    RetryExhaustedError,
)
from .retry_logic import RetryPolicy, classify_error

__all__ = [
    "SyncError",
    "NotionError",
    "ErrorClass",
    "InvalidCredentialsError",
    "ObjectNotFoundError",
    "APIUnreachableError",
    "RemoteAPIError",
    "RetryExhaustedError",
    "RetryPolicy",
    "classify_error",
]
