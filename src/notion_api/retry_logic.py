"""Retry logic with exponential backoff for Notion API calls.

This module provides a retry policy for rate limit (429), conflict (409) and
server-side (5xx) failures returned by the Notion API. It implements
exponential backoff (2s, 4s, 8s, ...) and fails fast for every other error.
"""

import time
import logging
from typing import Callable, Iterator, TypeVar
from functools import wraps

from .errors import ErrorClass, RemoteAPIError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_CLASSES = frozenset({
    ErrorClass.RATE_LIMITED,
    ErrorClass.CONFLICT,
    ErrorClass.SERVER_ERROR,
})

# Notion error codes (response body "code" field) mapped to a classification
NOTION_CODE_CLASSES = {
    'rate_limited': ErrorClass.RATE_LIMITED,
    'conflict_error': ErrorClass.CONFLICT,
    'internal_server_error': ErrorClass.SERVER_ERROR,
    'service_unavailable': ErrorClass.SERVER_ERROR,
    'database_connection_unavailable': ErrorClass.SERVER_ERROR,
    'gateway_timeout': ErrorClass.SERVER_ERROR,
}


def classify_status(status_code: int) -> ErrorClass:
    """Map an HTTP status code to an ErrorClass."""
    if status_code == 429:
        return ErrorClass.RATE_LIMITED
    if status_code == 409:
        return ErrorClass.CONFLICT
    if status_code >= 500:
        return ErrorClass.SERVER_ERROR
    return ErrorClass.OTHER


def classify_error(exception: BaseException) -> ErrorClass:
    """Classify an exception raised by a remote call.

    Checks, in order: our own RemoteAPIError classification, a status_code
    attribute, a response.status_code attribute (requests pattern), and a
    Notion error code attribute.

    Args:
        exception: The exception to classify

    Returns:
        ErrorClass for the failure (OTHER when nothing matches)
    """
    if isinstance(exception, RemoteAPIError):
        return exception.classification

    status_code = getattr(exception, 'status_code', None)
    if isinstance(status_code, int):
        return classify_status(status_code)

    response = getattr(exception, 'response', None)
    if response is not None:
        status_code = getattr(response, 'status_code', None)
        if isinstance(status_code, int):
            return classify_status(status_code)

    code = getattr(exception, 'code', None)
    if isinstance(code, str) and code in NOTION_CODE_CLASSES:
        return NOTION_CODE_CLASSES[code]

    return ErrorClass.OTHER


class RetryPolicy:
    """Retry strategy parameterized by a classifier and a backoff schedule.

    A single policy instance is injected into every component that talks to
    a remote service, so the retry behavior lives in exactly one place.

    Attributes:
        max_attempts: Total number of attempts (first call included)
        base_delay: Delay in seconds before the second attempt; doubles after
        classify: Function mapping an exception to an ErrorClass
        sleep: Function used to wait between attempts

    Example:
        >>> policy = RetryPolicy(max_attempts=5)
        >>> result = policy.call(api.list_block_children, "abc123")
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 2.0,
        classify: Callable[[BaseException], ErrorClass] = classify_error,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if base_delay < 0:
            raise ValueError(f"base_delay cannot be negative, got {base_delay}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.classify = classify
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Return the wait before retrying after failed attempt number `attempt` (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))

    def delays(self) -> Iterator[float]:
        """Yield the full backoff schedule (max_attempts - 1 delays)."""
        for attempt in range(1, self.max_attempts):
            yield self.delay_for(attempt)

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Execute func, retrying retryable failures with exponential backoff.

        Args:
            func: The function to execute with retry logic
            *args: Positional arguments to pass to the function
            **kwargs: Keyword arguments to pass to the function

        Returns:
            The return value of the function

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable error
            Other exceptions: Passed through immediately without retry
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                classification = self.classify(e)
                if classification not in RETRYABLE_CLASSES:
                    raise

                if attempt >= self.max_attempts:
                    logger.error(
                        f"Notion API error ({classification.value}) persisted after "
                        f"{self.max_attempts} attempts, giving up"
                    )
                    raise RetryExhaustedError(self.max_attempts, e) from e

                wait_time = self.delay_for(attempt)
                logger.info(
                    f"Notion API error ({classification.value}), retrying in {wait_time:g}s "
                    f"(attempt {attempt}/{self.max_attempts - 1})"
                )
                self.sleep(wait_time)

        # Unreachable: the loop either returns or raises
        raise RetryExhaustedError(self.max_attempts)


def as_decorator(policy: RetryPolicy) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator factory applying a RetryPolicy to a function.

    Example:
        >>> @as_decorator(RetryPolicy(max_attempts=3))
        ... def fetch_children(block_id: str):
        ...     return api.list_block_children(block_id)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return policy.call(func, *args, **kwargs)

        return wrapper

    return decorator
