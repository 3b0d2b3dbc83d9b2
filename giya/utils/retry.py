"""
Retry with exponential backoff for outbound calls.

Usage:
    from giya.utils.retry import retry_with_backoff

    response = retry_with_backoff(lambda: requests.post(url, json=payload, timeout=10))
"""
import time
import random
import logging
from typing import Callable, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0    # seconds
DEFAULT_MAX_DELAY = 10.0    # seconds
DEFAULT_BACKOFF_FACTOR = 2
DEFAULT_JITTER = 0.1        # up to 10% of the computed delay


def is_retryable_error(error: Exception) -> bool:
    """
    Classify an exception as transient.

    Connection failures, timeouts and HTTP 5xx responses are retryable.
    Client errors (4xx) and everything else are not.
    """
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(error, requests.HTTPError):
        response = error.response
        return response is not None and response.status_code >= 500
    return isinstance(error, (ConnectionError, TimeoutError))


def compute_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY,
                  max_delay: float = DEFAULT_MAX_DELAY,
                  backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
                  jitter: float = DEFAULT_JITTER) -> float:
    """Delay before retry number `attempt` (0-based)."""
    delay = min(base_delay * (backoff_factor ** attempt), max_delay)
    if jitter:
        delay += random.uniform(0, delay * jitter)
    return delay


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    jitter: float = DEFAULT_JITTER,
    should_retry: Callable[[Exception], bool] = is_retryable_error,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying transient failures.

    Makes at most max_retries + 1 attempts. Non-retryable errors and the
    final failure are re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                raise
            delay = compute_delay(attempt, base_delay, max_delay, backoff_factor, jitter)
            logger.warning(
                'Retryable error (attempt %d/%d), retrying in %.2fs: %s',
                attempt + 1, max_retries, delay, e
            )
            sleep(delay)
            attempt += 1
