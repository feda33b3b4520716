"""Retry transient download failures with exponential backoff."""
import functools
import time
from typing import Tuple, Type

from pihomelab.core.logger import get_logger

logger = get_logger(__name__)


def retry(
    transient: Tuple[Type[Exception], ...],
    attempts: int = 3,
    delay: float = 2.0,
    backoff: float = 2.0,
):
    """Re-run the wrapped call when it raises one of ``transient``.

    Anything else propagates on the first failure, so a 404 is reported at
    once while a dropped connection gets ``attempts`` tries.

    Example:
        @retry((requests.ConnectionError, requests.Timeout))
        def _fetch(self, url, target):
            ...
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except transient as e:
                    if attempt >= attempts:
                        logger.error(f"{func.__name__}: giving up after {attempts} attempts ({e})")
                        raise
                    logger.warning(f"{func.__name__}: attempt {attempt}/{attempts} failed ({e}), retrying in {wait:.0f}s")
                    time.sleep(wait)
                    wait *= backoff
                    attempt += 1

        return wrapper

    return decorator
