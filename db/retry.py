"""
db/retry.py
-----------
Exponential-backoff retry for transient failures.

Opt-in only: repositories and the migrator never call this, so permanent
failures surface immediately. Intended for callers such as startup probing.
"""

import time
from typing import Callable, TypeVar

from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry(
    operation: Callable[[], T],
    max_attempts: int,
    *,
    base_delay: float = 0.001,
    factor: float = 5.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    Call `operation` until it succeeds or attempts run out.

    Sleeps base_delay * factor ** (attempt - 1) between attempts
    (1ms, 5ms, 25ms, ... with the defaults).

    Args:
        operation: Zero-argument callable to run.
        max_attempts: Total number of calls allowed (>= 1).
        base_delay: Delay in seconds after the first failure.
        factor: Growth factor applied to the delay on every further failure.
        retry_on: Exception types worth retrying; anything else propagates at once.

    Returns:
        Whatever `operation` returns on its first successful call.

    Raises:
        ValueError: If max_attempts is below 1.
        Exception: The last error raised by `operation`, unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as e:
            if attempt == max_attempts:
                logger.error(f"Giving up after {attempt} attempt(s): {e}")
                raise
            delay = base_delay * factor ** (attempt - 1)
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}; retrying in {delay:.3f}s")
            time.sleep(delay)

    raise AssertionError("unreachable")
