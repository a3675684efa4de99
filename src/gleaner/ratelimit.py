"""Delay-based pacing for outbound calls.

Sources, detail pages and summarizer chunks are paced by fixed delays.
The sleep function is injectable so tests run with zero real delay
while production keeps real pacing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-interval pacer keyed by call category.

    ``pause(key, seconds)`` blocks until at least ``seconds`` have passed
    since the previous ``pause`` or ``delay`` for the same key. The first
    call for a key does not block.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self._last: dict[str, float] = {}
        self.history: list[tuple[str, float]] = []

    def pause(self, key: str, seconds: float) -> float:
        """Wait out the remainder of ``seconds`` since the last call for ``key``.

        Returns:
            The number of seconds actually slept.
        """
        now = self._clock()
        last = self._last.get(key)
        waited = 0.0
        if last is not None and seconds > 0:
            remaining = seconds - (now - last)
            if remaining > 0:
                logger.debug("Pacing %s for %.2fs", key, remaining)
                self._sleep(remaining)
                waited = remaining
        self._last[key] = self._clock()
        self.history.append((key, waited))
        return waited

    def delay(self, key: str, seconds: float) -> None:
        """Unconditionally sleep ``seconds`` (a fixed gap after a call)."""
        if seconds > 0:
            self._sleep(seconds)
        self._last[key] = self._clock()
        self.history.append((key, seconds))


def no_delay_limiter() -> RateLimiter:
    """A limiter that never sleeps. Used in tests and dry runs."""
    return RateLimiter(sleep=lambda _seconds: None)
