"""Bounded retry for persistence failures at the HTTP boundary"""

import logging
import time
from typing import Callable, TypeVar
from commission_gateway.config import settings
from commission_gateway.domain.exceptions import PersistenceError

T = TypeVar("T")


def with_persistence_retry(
    operation: Callable[[], T],
    max_retries: int | None = None,
    backoff_base: float | None = None,
) -> T:
    """
    Run `operation`, retrying only when it raises PersistenceError.

    Retry strategy:
    - Exponential backoff: base, 2*base, 4*base, ... (base * 2^(attempt-1))
    - Every other error propagates immediately
    - After max_retries attempts the last PersistenceError propagates
    """
    max_retries = max_retries if max_retries is not None else settings.persistence_max_retries
    backoff_base = backoff_base if backoff_base is not None else settings.persistence_backoff_base

    attempt = 0
    while True:
        try:
            return operation()
        except PersistenceError as e:
            attempt += 1
            if attempt >= max_retries:
                raise

            backoff = backoff_base * (2 ** (attempt - 1))
            logging.warning(f"Persistence failure, retrying in {backoff}s: {e}", extra={"attempt": attempt})
            time.sleep(backoff)
