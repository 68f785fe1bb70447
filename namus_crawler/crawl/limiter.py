from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

DEFAULT_MAX_IN_FLIGHT = 5


class Permit:
    """One admitted slot of a ConcurrencyLimiter.

    Releasing is idempotent; the permit also releases itself when used as a
    context manager.
    """

    def __init__(self, limiter: "ConcurrencyLimiter") -> None:
        self._limiter: Optional[ConcurrencyLimiter] = limiter

    @property
    def released(self) -> bool:
        return self._limiter is None

    def release(self) -> None:
        limiter, self._limiter = self._limiter, None
        if limiter is not None:
            limiter._release()

    def __enter__(self) -> "Permit":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


class ConcurrencyLimiter:
    """Counting admission gate bounding in-flight remote calls.

    Wraps an asyncio.Semaphore and keeps usage counters for the run log.
    Admission order is whatever the semaphore gives; it is not guaranteed FIFO.

    Usage:
        limiter = ConcurrencyLimiter(5)
        async with limiter.permit():
            await client.get_record(...)
    """

    def __init__(self, max_in_flight: int = DEFAULT_MAX_IN_FLIGHT) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._max_in_flight = int(max_in_flight)
        self._semaphore = asyncio.Semaphore(self._max_in_flight)
        self._in_use = 0
        self._peak_in_use = 0
        self._acquired = 0

    @property
    def max_in_flight(self) -> int:
        return self._max_in_flight

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak_in_use(self) -> int:
        return self._peak_in_use

    async def acquire(self) -> Permit:
        """Wait for a free slot and return a permit occupying it."""
        await self._semaphore.acquire()
        self._in_use += 1
        self._acquired += 1
        if self._in_use > self._peak_in_use:
            self._peak_in_use = self._in_use
        return Permit(self)

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[Permit]:
        """Hold a permit for the body of the block, released on every exit path."""
        held = await self.acquire()
        try:
            yield held
        finally:
            held.release()

    def _release(self) -> None:
        self._in_use -= 1
        self._semaphore.release()

    def get_stats(self) -> Dict[str, int]:
        return {
            "max_in_flight": self._max_in_flight,
            "in_use": self._in_use,
            "peak_in_use": self._peak_in_use,
            "acquired": self._acquired,
        }
