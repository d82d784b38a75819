"""Outbound call pacing with exponential backoff.

Required gap between admitted calls:

    interval = min(base * 2 ** consecutive_failures, ceiling)

try_acquire() never waits. A denied caller is expected to fall back rather
than queue, so some line always reaches the conversation on time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        base_interval: float = 10.0,
        max_interval: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if base_interval < 0 or max_interval < base_interval:
            raise ValueError("need 0 <= base_interval <= max_interval")
        self.base_interval = base_interval
        self.max_interval = max_interval
        self._clock = clock
        self.last_call_at: float | None = None
        self.consecutive_failures = 0

    @property
    def current_interval(self) -> float:
        exponent = min(self.consecutive_failures, 32)
        return min(self.base_interval * 2 ** exponent, self.max_interval)

    def try_acquire(self) -> bool:
        """True if a call may go out now. The caller then calls record_attempt()."""
        if self.last_call_at is None:
            return True
        elapsed = self._clock() - self.last_call_at
        if elapsed < self.current_interval:
            logger.debug(
                "rate limited: %.1fs since last call, need %.1fs",
                elapsed, self.current_interval,
            )
            return False
        return True

    def record_attempt(self) -> None:
        self.last_call_at = self._clock()

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        logger.debug(
            "backoff: %d consecutive failure(s), interval now %.1fs",
            self.consecutive_failures, self.current_interval,
        )

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def reset(self) -> None:
        self.last_call_at = None
        self.consecutive_failures = 0
