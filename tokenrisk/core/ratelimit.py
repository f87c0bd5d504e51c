import asyncio
import time
from typing import Awaitable, Callable


class TokenBucket:
    """
    Token-bucket limiter, one per upstream API.

    `acquire()` waits until a token is available. `rate` is tokens per second;
    `capacity` bounds the burst size. A rate of 0 disables limiting.
    """

    def __init__(
        self,
        rate: float,
        capacity: float = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.rate = rate
        self.capacity = capacity if capacity is not None else max(rate, 1.0)
        self._tokens = self.capacity
        self._clock = clock
        self._sleep = sleep
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self):
        now = self._clock()
        elapsed = now - self._updated
        self._updated = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)

    async def acquire(self):
        if self.rate <= 0:
            return
        async with self._lock:
            self._refill()
            while self._tokens < 1:
                await self._sleep((1 - self._tokens) / self.rate)
                self._refill()
            self._tokens -= 1
