"""Capped exponential backoff for automatic reconnection."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

# Reconnect counter value meaning "do not retry"
RECONNECT_DISABLED = -1


@dataclass(frozen=True)
class ReconnectPolicy:
    """Backoff parameters.

    The delay before attempt ``n`` is ``min(cap, base ** n) * unit`` seconds,
    which gives 2, 4, 8, 16, 32, 32, ... with the defaults.
    """

    max_attempts: int | None = None
    base: float = 2.0
    cap: float = 32.0
    unit: float = 1.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based)."""
        return min(self.cap, self.base**attempt) * self.unit

    def allows(self, attempt: int) -> bool:
        """Whether ``attempt`` is within ``max_attempts``."""
        return self.max_attempts is None or attempt <= self.max_attempts


class ReconnectScheduler:
    """Own the reconnect counter and the pending reconnect task."""

    def __init__(self, policy: ReconnectPolicy | None = None) -> None:
        self.policy = policy or ReconnectPolicy()
        self.attempts = 0
        self._task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self.attempts != RECONNECT_DISABLED

    @property
    def pending(self) -> bool:
        """Whether a reconnect is waiting for its delay to elapse."""
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        """Zero the counter after a successful login."""
        self.attempts = 0

    def enable(self) -> None:
        """Allow reconnection again after ``disable``."""
        if not self.enabled:
            self.attempts = 0

    def disable(self) -> None:
        """Stop reconnecting and cancel any pending attempt."""
        self.cancel()
        self.attempts = RECONNECT_DISABLED

    def cancel(self) -> None:
        """Cancel the pending attempt, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def schedule(self, callback: Callable[[], Awaitable[None]]) -> float | None:
        """Schedule ``callback`` after the next backoff delay.

        Parameters
        ----------
        callback : Callable[[], Awaitable[None]]
            Coroutine function performing the reconnect attempt

        Returns
        -------
        float | None
            Delay in seconds, or None if reconnection is disabled, already
            pending, or the attempt budget is spent
        """
        if not self.enabled or self.pending:
            return None

        attempt = self.attempts + 1
        if not self.policy.allows(attempt):
            return None

        self.attempts = attempt
        delay = self.policy.delay(attempt)
        self._task = asyncio.get_running_loop().create_task(self._run(delay, callback))
        return delay

    async def _run(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(delay)
        # Past this point the attempt is in progress and no longer cancellable here
        self._task = None
        await callback()
