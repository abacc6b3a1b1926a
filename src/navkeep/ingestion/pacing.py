"""Inter-request pacing for sources that expect polite request rates."""

from __future__ import annotations

from aiolimiter import AsyncLimiter


class RequestPacer:
    """Spaces successive requests at least ``delay`` seconds apart.

    The first ``wait()`` returns immediately. A delay of 0 disables pacing.
    """

    def __init__(self, delay: float = 0.0) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self._delay = delay
        self._limiter = AsyncLimiter(max_rate=1, time_period=delay) if delay > 0 else None

    @property
    def delay(self) -> float:
        return self._delay

    async def wait(self) -> None:
        if self._limiter is not None:
            await self._limiter.acquire()
