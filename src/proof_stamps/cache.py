"""Refresh-on-demand value cache with a fixed refresh period."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

__all__ = ["TimeBoundedCache"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class TimeBoundedCache(Generic[T]):
    """Cache a single value fetched on demand and refreshed once per period.

    At most one refresh runs at a time. While a refresh is outstanding the
    previous value is served; callers only wait when no value has been
    fetched yet. A failed refresh keeps the previous value and is retried on
    the next call.

    Args:
        fetch: Coroutine factory producing a fresh value.
        period_seconds: Age after which the cached value is stale.
        clock: Monotonic time source in seconds.
        name: Label used in log records.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        period_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "value",
    ) -> None:
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self._fetch = fetch
        self._period = period_seconds
        self._clock = clock
        self._name = name
        self._value: T | None = None
        self._has_value = False
        self._last_refreshed: float | None = None
        self._refresh_task: asyncio.Task[T] | None = None

    @property
    def period_seconds(self) -> float:
        return self._period

    @property
    def last_refreshed(self) -> float | None:
        return self._last_refreshed

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None

    def needs_refresh(self) -> bool:
        """Return ``True`` when no value is cached or the value is stale."""

        if not self._has_value or self._last_refreshed is None:
            return True
        return self._clock() - self._last_refreshed > self._period

    async def get(self) -> T:
        """Return the cached value, starting a refresh when it is stale.

        Raises:
            Exception: Whatever ``fetch`` raises, when no value is cached yet.
        """

        if not self.needs_refresh():
            return self._value  # type: ignore[return-value]

        task = self._refresh_task
        if task is None:
            task = asyncio.get_running_loop().create_task(self._refresh())
            task.add_done_callback(self._on_refresh_done)
            self._refresh_task = task

        if self._has_value:
            LOGGER.debug(
                "Serving stale cached value during refresh",
                extra={"cache": self._name, "cache_event": "stale"},
            )
            return self._value  # type: ignore[return-value]
        return await asyncio.shield(task)

    async def _refresh(self) -> T:
        value = await self._fetch()
        self._value = value
        self._has_value = True
        self._last_refreshed = self._clock()
        return value

    def _on_refresh_done(self, task: asyncio.Task[T]) -> None:
        self._refresh_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self._has_value:
            LOGGER.warning(
                "Cache refresh failed; keeping previous value",
                extra={"cache": self._name, "error_type": type(exc).__name__},
                exc_info=exc,
            )
