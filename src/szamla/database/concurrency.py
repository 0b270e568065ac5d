"""Retry helper for database operations that contend for write locks."""

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, IntegrityError)


def run_with_retry(func: Callable[[], T], *, attempts: int = 5, backoff_base: float = 0.05) -> T:
    """Execute a self-contained transactional operation, retrying on contention.

    ``func`` must open and close its own transaction so a failed attempt
    leaves nothing behind. Retries on OperationalError (locked database,
    deadlock) and IntegrityError (two writers creating the same row).
    The last error is re-raised once the attempts are used up.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.debug("Retrying after %s (attempt %d/%d, sleeping %.2fs)", type(exc).__name__, attempt + 1, attempts, delay)
            time.sleep(delay)
    raise RuntimeError("run_with_retry called with attempts < 1")
