"""Client-side throttling for catalog searches."""

import time
from collections import deque
from collections.abc import Callable


class RateLimiter:
    """
    At most ``limit`` calls in any ``window`` seconds.

    Recent call times are kept in order; when the window is full, ``acquire``
    sleeps until the oldest call falls out of it. The clock and sleep
    function can be swapped for fakes in tests.

        >>> limiter = RateLimiter.per_minute(60)
        >>> limiter.acquire()
        0.0
    """

    def __init__(
        self,
        limit: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if limit < 1:
            raise ValueError(f"Rate limit must allow at least one call, got {limit}")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self.calls: deque[float] = deque()

    @classmethod
    def per_minute(cls, limit: int, **kwargs) -> "RateLimiter":
        return cls(limit, 60.0, **kwargs)

    def _drop_expired(self, now: float) -> None:
        cutoff = now - self.window
        while self.calls and self.calls[0] <= cutoff:
            self.calls.popleft()

    def acquire(self) -> float:
        """Wait for a free slot and claim it.

        Returns:
            Seconds spent waiting
        """
        now = self._clock()
        self._drop_expired(now)

        waited = 0.0
        if len(self.calls) >= self.limit:
            waited = max(self.window - (now - self.calls[0]), 0.0)
            if waited:
                self._sleep(waited)
            now = self._clock()
            self._drop_expired(now)

        self.calls.append(now)
        return waited
