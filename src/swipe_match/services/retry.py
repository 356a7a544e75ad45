"""Bounded exponential backoff for idempotent store reads."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from swipe_match.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retries StoreUnavailableError on reads; writes must not go through this."""

    attempts: int = 3
    base_delay_seconds: float = 0.1
    max_delay_seconds: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def read(self, operation: Callable[[], T], description: str = "read") -> T:
        """Run a read, retrying transient store failures."""
        for attempt in range(self.attempts):
            try:
                return operation()
            except StoreUnavailableError:
                if attempt == self.attempts - 1:
                    raise
                delay = min(
                    self.base_delay_seconds * (2**attempt), self.max_delay_seconds
                )
                logger.warning(
                    "Store unavailable during %s, retrying in %.2fs",
                    description,
                    delay,
                    extra={"attempt": attempt + 1},
                )
                self.sleep(delay)
        raise StoreUnavailableError(f"{description} was not attempted")


NO_RETRY = RetryPolicy(attempts=1)
