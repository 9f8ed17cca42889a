"""Bounded retry for idempotent reads. Mutations are never retried here."""

import logging
import time
from typing import Callable, TypeVar

from ledgerflow.domain.exceptions import InfrastructureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_read(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func``; on InfrastructureError wait backoff * 2**n and try again."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    attempt = 1
    while True:
        try:
            return func()
        except InfrastructureError as exc:
            if attempt >= attempts:
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.warning("Read failed (attempt %d/%d), retrying in %.2fs: %s", attempt, attempts, delay, exc)
            sleep(delay)
            attempt += 1
