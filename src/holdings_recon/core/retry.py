"""Reusable retry policy with bounded exponential backoff."""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from holdings_recon.core.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Retry transient failures with exponential backoff and jitter.

    Attempt n (1-based) that fails waits
    min(max_delay, base_delay * 2 ** (n - 1)) + uniform(0, jitter)
    seconds before attempt n + 1. After max_attempts the last error is raised.
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (SourceUnavailable,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Return the wait after the given failed attempt (1-based)."""
        backoff = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return backoff + self.rng.uniform(0, self.jitter)

    def call(
        self,
        fn: Callable[[], T],
        description: str = "operation",
        before_sleep: Optional[Callable[[float], None]] = None,
    ) -> T:
        """
        Invoke fn until it succeeds or attempts are exhausted.

        before_sleep receives the planned delay and may raise to abort
        (used for run deadlines).
        """
        attempt = 1
        while True:
            try:
                return fn()
            except self.retry_on as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", description, attempt, exc
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    description,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                if before_sleep is not None:
                    before_sleep(delay)
                self.sleep(delay)
                attempt += 1
