"""Single-shot publish/subscribe table used to correlate replies."""

import asyncio
from collections.abc import Callable, Collection
from typing import Any

from lib.wattbox.exceptions import RequestInFlightError


class CorrelationBus:
    """Map each correlation key to at most one waiting future.

    Published values with no waiter are dropped. A second subscription on a
    key that still has a live waiter fails immediately instead of replacing
    or queueing behind the first one.
    """

    def __init__(self, device_ip: str | None = None) -> None:
        self.device_ip = device_ip
        self._waiters: dict[str, asyncio.Future] = {}

    def subscribe(self, key: str) -> asyncio.Future:
        """Register the single waiter for ``key``.

        Parameters
        ----------
        key : str
            Correlation key

        Returns
        -------
        asyncio.Future
            Future resolved by the next ``publish`` on ``key``

        Raises
        ------
        RequestInFlightError
            If ``key`` already has a waiter
        """
        current = self._waiters.get(key)
        if current is not None and not current.done():
            raise RequestInFlightError(key, device_ip=self.device_ip)

        future = asyncio.get_running_loop().create_future()
        self._waiters[key] = future
        return future

    def unsubscribe(self, key: str, future: asyncio.Future | None = None) -> None:
        """Remove the waiter for ``key``, only if it is still ``future`` when given."""
        current = self._waiters.get(key)
        if current is None or (future is not None and current is not future):
            return
        del self._waiters[key]
        if not current.done():
            current.cancel()

    def publish(self, key: str, payload: Any = None) -> bool:
        """Resolve the waiter for ``key``.

        Returns
        -------
        bool
            False if nobody was waiting and the payload was dropped
        """
        future = self._waiters.pop(key, None)
        if future is None or future.done():
            return False
        future.set_result(payload)
        return True

    def fail(self, key: str, exc: BaseException) -> bool:
        """Reject the waiter for ``key`` with ``exc``."""
        future = self._waiters.pop(key, None)
        if future is None or future.done():
            return False
        future.set_exception(exc)
        return True

    def fail_all(
        self,
        make_error: Callable[[str], BaseException],
        exclude: Collection[str] = (),
    ) -> int:
        """Reject every waiter not in ``exclude``.

        Parameters
        ----------
        make_error : Callable[[str], BaseException]
            Builds a fresh exception for each key
        exclude : Collection[str], optional
            Keys left untouched, by default ()

        Returns
        -------
        int
            Number of waiters rejected
        """
        failed = 0
        for key in [k for k in self._waiters if k not in exclude]:
            if self.fail(key, make_error(key)):
                failed += 1
        return failed

    def pending(self) -> list[str]:
        """Keys with a live waiter."""
        return [key for key, future in self._waiters.items() if not future.done()]

    def __contains__(self, key: object) -> bool:
        future = self._waiters.get(key)  # type: ignore[arg-type]
        return future is not None and not future.done()

    def __len__(self) -> int:
        return len(self.pending())
