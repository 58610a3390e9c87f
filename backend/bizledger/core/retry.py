"""
Central retry policy for store calls.

Only errors flagged ``retryable`` (``PersistenceError``) are retried; expected
outcomes such as ``LimitExceeded`` or ``InvalidState`` propagate on the first
attempt.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from bizledger.core.config import settings
from bizledger.core.errors import LedgerError


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base: float = 0.2
    backoff_max: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Exponential backoff for the given 1-based attempt that just failed."""
        return min(self.backoff_max, self.backoff_base * (2 ** max(attempt - 1, 0)))

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return isinstance(error, LedgerError) and error.retryable and attempt < self.max_attempts


def default_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(1, settings.retry_max_attempts),
        backoff_base=settings.retry_backoff_base_s,
        backoff_max=settings.retry_backoff_max_s,
    )


def call_with_retry(
    func: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "store call",
) -> T:
    policy = policy or default_policy()
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except LedgerError as e:
            if not policy.should_retry(e, attempt):
                if e.retryable:
                    logger.error("%s failed after %s attempt(s): %s", label, attempt, e.message)
                raise
            delay = policy.delay_for(attempt)
            logger.warning("%s failed (attempt %s/%s), retrying in %.2fs: %s",
                           label, attempt, policy.max_attempts, delay, e.message)
            sleep(delay)
