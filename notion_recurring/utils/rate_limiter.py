"""
Rate limiter for outbound Notion API calls.

Dispatches operations with a minimum spacing between calls and a bounded
number of operations in flight. Throttling responses (HTTP 429) are absorbed
here: the limiter waits for the server's Retry-After hint and dispatches
the operation again instead of surfacing the error.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from notion_recurring.config.constants import (
    RATE_LIMIT_DEFAULT_RETRY_AFTER,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MIN_INTERVAL,
    RATE_LIMIT_STATUS_CODE,
)

T = TypeVar('T')


def is_rate_limit_error(exception: Exception) -> bool:
    """Check whether an exception carries an HTTP 429 status."""
    status_code = getattr(exception, 'status_code', None)
    if status_code is None and hasattr(exception, 'response'):
        status_code = getattr(exception.response, 'status_code', None)
    return status_code == RATE_LIMIT_STATUS_CODE


class RateLimiter:
    """
    Serializes calls to an external API.

    Features:
    - Minimum interval between dispatches (333ms by default)
    - Bounded concurrency (one call in flight by default)
    - Retry-After aware handling of 429 responses
    - Dispatch metrics for logging
    """

    def __init__(
        self,
        min_interval: float = RATE_LIMIT_MIN_INTERVAL,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        default_retry_after: float = RATE_LIMIT_DEFAULT_RETRY_AFTER,
        max_rate_limit_waits: Optional[int] = None
    ):
        """
        Initialize the limiter.

        Args:
            min_interval: Minimum seconds between two dispatches
            max_concurrent: Maximum number of operations in flight
            default_retry_after: Wait in seconds when a 429 has no Retry-After
            max_rate_limit_waits: Optional ceiling on absorbed 429s per operation
                (None means unlimited)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self.default_retry_after = default_retry_after
        self.max_rate_limit_waits = max_rate_limit_waits

        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._next_dispatch = 0.0

        self.logger = logging.getLogger(__name__)

        self.metrics = {
            'dispatched': 0,
            'rate_limited': 0,
            'total_wait_time': 0.0,
        }

    def _wait_for_turn(self):
        """Block until the next dispatch slot opens, then claim it."""
        with self._lock:
            wait = self._next_dispatch - time.monotonic()
            if wait > 0:
                self.metrics['total_wait_time'] += wait
                time.sleep(wait)
            self._next_dispatch = time.monotonic() + self.min_interval
            self.metrics['dispatched'] += 1

    def delay_next(self, seconds: float):
        """Push the next dispatch back by at least `seconds` from now."""
        with self._lock:
            self._next_dispatch = max(self._next_dispatch, time.monotonic() + seconds)

    def retry_after_seconds(self, exception: Exception) -> float:
        """Read the server's backoff hint from a 429 error."""
        retry_after = getattr(exception, 'retry_after', None)
        if retry_after is None and hasattr(exception, 'response'):
            header = getattr(exception.response, 'headers', {}).get('Retry-After')
            try:
                retry_after = float(header) if header else None
            except ValueError:
                retry_after = None
        return retry_after if retry_after is not None else self.default_retry_after

    def schedule(self, operation: Callable[..., T], *args, **kwargs) -> T:
        """
        Dispatch an operation once its turn comes.

        Args:
            operation: Callable performing one API request
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Result of the operation
        """
        name = getattr(operation, '__name__', 'operation')
        rate_limited = 0

        while True:
            with self._slots:
                self._wait_for_turn()
                try:
                    return operation(*args, **kwargs)
                except Exception as e:
                    if not is_rate_limit_error(e):
                        raise
                    rate_limited += 1
                    self.metrics['rate_limited'] += 1
                    if (self.max_rate_limit_waits is not None
                            and rate_limited > self.max_rate_limit_waits):
                        self.logger.error(
                            f"{name} still rate limited after {self.max_rate_limit_waits} waits"
                        )
                        raise
                    wait = self.retry_after_seconds(e)
                    self.logger.warning(
                        f"{name} was rate limited. Retrying after {wait:.1f} seconds..."
                    )
                    self.delay_next(wait)

    def get_metrics(self) -> Dict[str, Any]:
        """Get limiter metrics for logging."""
        return self.metrics.copy()
