"""Scanning for the target peripheral with bounded retries."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .exceptions import DeviceNotFoundError
from .transport import BLEPeripheral, BLETransport

_LOGGER = logging.getLogger(__name__)


class DiscoveryState(Enum):
    """States of a discovery run."""

    IDLE = "idle"
    SCANNING = "scanning"
    RETRY_WAIT = "retry_wait"
    FOUND = "found"
    EXHAUSTED = "exhausted"


class DiscoveryEngine:
    """
    Find one peripheral by address.

    Each attempt scans for ``scan_duration`` seconds. After a miss the
    engine waits ``retry_cooldown`` seconds and scans again, up to
    ``scan_retries`` attempts in total, then raises DeviceNotFoundError.
    """

    def __init__(
        self,
        transport: BLETransport,
        address: str,
        scan_duration: float,
        scan_retries: int,
        retry_cooldown: float,
    ) -> None:
        self._transport = transport
        self._address = address.lower()
        self._scan_duration = scan_duration
        self._max_attempts = max(1, scan_retries)
        self._retry_cooldown = retry_cooldown
        self._state = DiscoveryState.IDLE
        self._attempts = 0

    @property
    def state(self) -> DiscoveryState:
        """Get the current discovery state."""
        return self._state

    @property
    def attempts(self) -> int:
        """Get the number of scan attempts made so far."""
        return self._attempts

    async def discover(self) -> BLEPeripheral:
        """
        Scan until the target is found or the attempts run out.

        Returns:
            The discovered peripheral

        Raises:
            DeviceNotFoundError: If every attempt timed out
        """
        self._attempts = 0
        while True:
            self._attempts += 1
            _LOGGER.info(
                "%s: Scanning for device (attempt %s/%s)",
                self._address,
                self._attempts,
                self._max_attempts,
            )
            peripheral = await self._scan_once()
            if peripheral is not None:
                self._state = DiscoveryState.FOUND
                _LOGGER.info("%s: Found device", self._address)
                return peripheral

            if self._attempts >= self._max_attempts:
                self._state = DiscoveryState.EXHAUSTED
                _LOGGER.error(
                    "%s: Device not found after %s attempt(s)",
                    self._address,
                    self._attempts,
                )
                raise DeviceNotFoundError(self._address, self._attempts)

            self._state = DiscoveryState.RETRY_WAIT
            _LOGGER.debug(
                "%s: Device not found, retrying in %ss",
                self._address,
                self._retry_cooldown,
            )
            await asyncio.sleep(self._retry_cooldown)

    async def _scan_once(self) -> Optional[BLEPeripheral]:
        """Run one scan attempt; return the peripheral or None on timeout."""
        found: asyncio.Future[BLEPeripheral] = asyncio.get_running_loop().create_future()

        def on_discovered(peripheral: BLEPeripheral) -> None:
            if found.done():
                return
            if peripheral.address.lower() == self._address:
                found.set_result(peripheral)

        # Listeners of earlier attempts must not report into this one
        self._transport.clear_discovery_listeners()
        unregister = self._transport.add_discovery_listener(on_discovered)
        self._state = DiscoveryState.SCANNING

        try:
            try:
                await self._transport.start_scanning()
            except Exception as e:
                _LOGGER.warning("%s: Failed to start scanning: %s", self._address, e)
                return None

            try:
                return await asyncio.wait_for(found, self._scan_duration)
            except asyncio.TimeoutError:
                return None
        finally:
            unregister()
            try:
                await self._transport.stop_scanning()
            except Exception as e:
                _LOGGER.debug("%s: Error stopping scan: %s", self._address, e)
