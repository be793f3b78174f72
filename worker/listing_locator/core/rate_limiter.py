"""Sequential gate that spaces out outbound geocoder calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from listing_locator.core.config import ConfigError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allow at most one call per ``min_interval`` seconds.

    Resolution is single threaded, so callers are served in call order and no
    lock is taken. Build one instance per run and pass it to every client that
    talks to the rate-limited provider.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval <= 0:
            raise ConfigError("min_interval must be positive")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    def wait(self) -> float:
        """Block until the interval has elapsed, then record the call. Returns seconds slept."""
        slept = 0.0
        if self._last_call is not None:
            remaining = self.min_interval - (self._clock() - self._last_call)
            if remaining > 0:
                logger.debug("Rate limiter sleeping %.3fs", remaining)
                self._sleep(remaining)
                slept = remaining
        self._last_call = self._clock()
        return slept
