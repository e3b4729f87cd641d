"""Battery status extraction and caching."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Optional

from .const import DEFAULT_BATTERY_DP_ID, DataPointType
from .datapoints import find_dp

_LOGGER = logging.getLogger(__name__)


def _is_percentage(value) -> bool:
    return isinstance(value, int) and 0 <= value <= 100


class BatteryMonitor:
    """
    Last known battery level of a device.

    Reads are answered from the cache immediately. When the cache is older
    than ``check_interval`` a read also starts one background refresh; a
    failed refresh only leaves the cache stale.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Optional[int]]],
        check_interval: float,
        battery_dp_id: int = DEFAULT_BATTERY_DP_ID,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._refresh = refresh
        self._check_interval = check_interval
        self._battery_dp_id = battery_dp_id
        self._clock = clock
        self._level = -1
        self._last_check = 0.0
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def level(self) -> int:
        """Get the cached level, -1 if it was never read."""
        return self._level

    @property
    def last_check(self) -> float:
        """Get the time of the last successful query."""
        return self._last_check

    @property
    def is_stale(self) -> bool:
        """Check if the cache is older than the check interval."""
        return self._clock() - self._last_check > self._check_interval

    @property
    def refreshing(self) -> bool:
        """Check if a background refresh is running."""
        return self._refresh_task is not None and not self._refresh_task.done()

    def read(self) -> int:
        """
        Return the cached battery percentage (0 if unknown).

        Starts a background refresh if the cache is stale and no refresh
        is already running.
        """
        if self.is_stale and not self.refreshing:
            self._start_refresh()
        return self._level if _is_percentage(self._level) else 0

    def _start_refresh(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _LOGGER.debug("No running event loop, skipping battery refresh")
            return
        _LOGGER.debug("Battery level is stale, refreshing")
        self._refresh_task = loop.create_task(self._refresh_cache())

    async def _refresh_cache(self) -> None:
        try:
            await self._refresh()
        except Exception as e:
            _LOGGER.warning("Battery refresh failed: %s", e)

    async def wait_for_refresh(self) -> None:
        """Wait for a running background refresh to finish."""
        if self._refresh_task is not None:
            await asyncio.shield(self._refresh_task)

    def mark_checked(self) -> None:
        """Record a successful battery query."""
        self._last_check = self._clock()

    def update(self, level: int) -> None:
        """Store a new battery level."""
        self._level = level
        self.mark_checked()

    def extract(self, frame: bytes) -> Optional[int]:
        """
        Look for the battery datapoint in a received frame.

        Returns:
            The battery percentage if found (the cache is updated), else None
        """
        value = find_dp(frame, self._battery_dp_id, DataPointType.VALUE, _is_percentage)
        if value is None:
            return None
        _LOGGER.debug("Battery level: %s%%", value)
        self.update(value)
        return value
