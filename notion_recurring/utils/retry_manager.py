"""
Retry Manager with exponential backoff and status-based error classification.

Client errors (400-409) are never retried since they point at a request or
schema problem the caller has to fix. Server errors 500, 503 and 504 are
retried with exponential backoff and jitter. Every other status is treated
as fatal to avoid retrying errors nobody has classified.
"""

import time
import random
import logging
from typing import Callable, Dict, Any, Optional, TypeVar
from functools import wraps

import requests

from notion_recurring.config.constants import (
    CLIENT_ERROR_STATUS_MAX,
    CLIENT_ERROR_STATUS_MIN,
    RECORD_MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_EXPONENTIAL_BASE,
    RETRY_MAX_DELAY,
    RETRYABLE_STATUS_CODES,
)
from notion_recurring.utils.error_handling import MaxRetriesExceededError

# Type variable for generic function return types
T = TypeVar('T')


def get_status_code(exception: Exception) -> Optional[int]:
    """Extract an HTTP status code from an exception, if it carries one."""
    status_code = getattr(exception, 'status_code', None)
    if status_code is None and getattr(exception, 'response', None) is not None:
        status_code = getattr(exception.response, 'status_code', None)
    return status_code


class RetryManager:
    """
    Manages retry logic for fallible network operations.

    Features:
    - Status-based classification into retryable and fatal errors
    - Exponential backoff with jitter
    - Per-call retry ceilings (e.g. 5 for schema reads, 3 for record writes)
    - Retry metrics for logging
    """

    DEFAULT_CONFIG = {
        'max_retries': RECORD_MAX_RETRIES,
        'base_delay': RETRY_BASE_DELAY,  # seconds
        'max_delay': RETRY_MAX_DELAY,  # seconds
        'exponential_base': RETRY_EXPONENTIAL_BASE,
        'jitter': True,
        'retryable_status_codes': RETRYABLE_STATUS_CODES,
        'retryable_exceptions': (requests.Timeout, requests.ConnectionError),
    }

    def __init__(self, **custom_config):
        """
        Initialize RetryManager.

        Args:
            **custom_config: Configuration overriding DEFAULT_CONFIG
        """
        self.config = self.DEFAULT_CONFIG.copy()
        self.config.update(custom_config)

        self.logger = logging.getLogger(__name__)

        self.last_retry_count = 0
        self.metrics = {
            'total_attempts': 0,
            'total_retries': 0,
            'successful_retries': 0,
            'failed_retries': 0,
            'total_delay_time': 0.0,
        }

    def calculate_delay(self, retry_number: int) -> float:
        """
        Calculate delay before the given retry with exponential backoff.

        Args:
            retry_number: Retry about to happen (1-based)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.config['base_delay'] * (self.config['exponential_base'] ** (retry_number - 1)),
            self.config['max_delay']
        )

        if self.config.get('jitter', True):
            # Random jitter between -25% and +25% of the delay
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)
            delay = max(0.1, delay)

        return delay

    def is_retryable(self, exception: Exception) -> bool:
        """
        Classify an exception as retryable or fatal.

        Args:
            exception: The exception that occurred

        Returns:
            True for transient failures, False otherwise
        """
        status_code = get_status_code(exception)

        if status_code is None:
            return isinstance(exception, self.config.get('retryable_exceptions', ()))

        if CLIENT_ERROR_STATUS_MIN <= status_code <= CLIENT_ERROR_STATUS_MAX:
            return False

        return status_code in self.config.get('retryable_status_codes', ())

    def run(
        self,
        operation: Callable[[], T],
        operation_name: Optional[str] = None,
        max_retries: Optional[int] = None
    ) -> T:
        """
        Execute an operation, re-invoking it from scratch on transient errors.

        Args:
            operation: Zero-argument callable performing the work
            operation_name: Name used in log messages
            max_retries: Retries allowed after the first attempt

        Returns:
            Result of the operation

        Raises:
            MaxRetriesExceededError: When transient errors exhaust the retries
            Exception: Any non-retryable error, unchanged
        """
        name = operation_name or getattr(operation, '__name__', 'operation')
        retries_allowed = self.config['max_retries'] if max_retries is None else max_retries
        attempt = 0
        self.last_retry_count = 0

        while True:
            attempt += 1
            self.metrics['total_attempts'] += 1

            try:
                result = operation()
            except Exception as e:
                if not self.is_retryable(e):
                    self.logger.error(f"Non-retryable error in {name}: {e}")
                    raise

                if attempt > retries_allowed:
                    if attempt > 1:
                        self.metrics['failed_retries'] += 1
                    self.logger.error(f"All {attempt} attempts failed for {name}")
                    raise MaxRetriesExceededError(name, attempt, e) from e

                delay = self.calculate_delay(attempt)
                self.logger.warning(
                    f"Attempt {attempt} of {name} failed with error: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s..."
                )
                self.metrics['total_delay_time'] += delay
                self.metrics['total_retries'] += 1
                self.last_retry_count += 1
                time.sleep(delay)
                continue

            if attempt > 1:
                self.metrics['successful_retries'] += 1
                self.logger.info(f"{name} succeeded after {attempt} attempts")
            return result

    def with_retry(
        self,
        func: Callable[..., T],
        operation_name: Optional[str] = None,
        max_retries: Optional[int] = None
    ) -> Callable[..., T]:
        """
        Wrap a function with this manager's retry policy.

        Args:
            func: Function to wrap
            operation_name: Name used in log messages
            max_retries: Retries allowed after the first attempt

        Returns:
            Wrapped function with retry capability
        """
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return self.run(
                lambda: func(*args, **kwargs),
                operation_name=operation_name or func.__name__,
                max_retries=max_retries
            )

        return wrapper

    def get_metrics(self) -> Dict[str, Any]:
        """Get retry metrics for logging."""
        return self.metrics.copy()

    def reset_metrics(self):
        """Reset retry metrics."""
        self.last_retry_count = 0
        self.metrics = {
            'total_attempts': 0,
            'total_retries': 0,
            'successful_retries': 0,
            'failed_retries': 0,
            'total_delay_time': 0.0,
        }


def with_retry(
    max_retries: Optional[int] = None,
    operation_name: Optional[str] = None,
    **kwargs
) -> Callable:
    """
    Decorator factory for adding retry logic to functions.

    Args:
        max_retries: Retries allowed after the first attempt
        operation_name: Name used in log messages
        **kwargs: Additional RetryManager configuration

    Returns:
        Decorator function

    Example:
        @with_retry(max_retries=5, operation_name="retrieve database")
        def fetch_schema():
            ...
    """
    retry_manager = RetryManager(**kwargs)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        return retry_manager.with_retry(func, operation_name, max_retries)

    return decorator
