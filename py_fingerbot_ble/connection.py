"""Connection lifecycle for a discovered peripheral."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from .const import CHARACTERISTIC_NOTIFY_SHORT, CHARACTERISTIC_WRITE_SHORT
from .exceptions import (
    ConnectionTimeoutError,
    MissingWriteCharacteristicError,
    UnexpectedDisconnectError,
    WriteError,
)
from .guard import OperationGuard
from .transport import BLECharacteristic, BLEPeripheral, short_uuid

_LOGGER = logging.getLogger(__name__)


class ConnectionLifecycle:
    """
    Connect to a peripheral, set up its characteristics, and tear it down.

    Use as an async context manager; leaving the block always closes the
    connection, whatever the exit path.
    """

    def __init__(
        self,
        peripheral: BLEPeripheral,
        guard: OperationGuard,
        connect_timeout: float,
    ) -> None:
        self._peripheral = peripheral
        self._guard = guard
        self._connect_timeout = connect_timeout
        self._holding_guard = False
        self._closed = False
        self._dropped = False
        self._write_char: Optional[BLECharacteristic] = None
        self._notify_char: Optional[BLECharacteristic] = None
        self._notifying = False
        self._on_disconnect: Optional[Callable[[], None]] = None
        self._unregister_disconnect: Optional[Callable[[], None]] = None

    async def __aenter__(self) -> ConnectionLifecycle:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def address(self) -> str:
        """Get the peripheral address."""
        return self._peripheral.address

    @property
    def peripheral(self) -> BLEPeripheral:
        """Get the connected peripheral."""
        return self._peripheral

    @property
    def write_characteristic(self) -> Optional[BLECharacteristic]:
        """Get the write characteristic."""
        return self._write_char

    @property
    def notify_characteristic(self) -> Optional[BLECharacteristic]:
        """Get the notify characteristic, if the device has one."""
        return self._notify_char

    @property
    def notifying(self) -> bool:
        """Check if notifications were successfully enabled."""
        return self._notifying

    @property
    def closed(self) -> bool:
        """Check if the connection has been torn down."""
        return self._closed

    async def open(
        self,
        on_data: Callable[[bytes], None],
        on_disconnect: Callable[[], None],
    ) -> None:
        """
        Connect, locate the characteristics and subscribe to notifications.

        Args:
            on_data: Called with every notification received
            on_disconnect: Called if the device disconnects before close()

        Raises:
            BusyError: If another connection attempt is in progress
            ConnectionTimeoutError: If setup exceeds the connect timeout
            MissingWriteCharacteristicError: If the device has no write characteristic
            UnexpectedDisconnectError: If the device disconnects during setup
        """
        self._guard.acquire(f"connect {self.address}")
        self._holding_guard = True
        self._on_disconnect = on_disconnect
        self._dropped = False
        self._unregister_disconnect = self._peripheral.add_disconnect_listener(
            self._handle_disconnect
        )

        try:
            await asyncio.wait_for(self._setup(on_data), self._connect_timeout)
        except asyncio.TimeoutError as e:
            _LOGGER.error(
                "%s: Connection timed out after %ss", self.address, self._connect_timeout
            )
            await self.close()
            raise ConnectionTimeoutError(self._connect_timeout) from e
        except Exception:
            await self.close()
            raise

        if self._dropped:
            _LOGGER.error("%s: Device disconnected during setup", self.address)
            await self.close()
            raise UnexpectedDisconnectError()

    async def _setup(self, on_data: Callable[[bytes], None]) -> None:
        await self._peripheral.connect()
        _LOGGER.debug("%s: Connected, discovering characteristics", self.address)

        characteristics = await self._peripheral.discover_characteristics()
        by_uuid = {short_uuid(char.uuid): char for char in characteristics}
        self._write_char = by_uuid.get(CHARACTERISTIC_WRITE_SHORT)
        self._notify_char = by_uuid.get(CHARACTERISTIC_NOTIFY_SHORT)

        if self._write_char is None:
            _LOGGER.error("%s: No write characteristic found", self.address)
            raise MissingWriteCharacteristicError()

        if self._notify_char is None:
            _LOGGER.debug(
                "%s: No notify characteristic, steps will advance on timers",
                self.address,
            )
            return

        try:
            await self._notify_char.subscribe(on_data)
            self._notifying = True
        except Exception as e:
            _LOGGER.warning(
                "%s: Failed to subscribe to notifications: %s", self.address, e
            )

    def _handle_disconnect(self) -> None:
        if self._closed:
            return
        self._dropped = True
        _LOGGER.warning("%s: Device disconnected unexpectedly", self.address)
        if self._on_disconnect:
            self._on_disconnect()

    async def write(self, data: bytes) -> None:
        """
        Write a packet without response.

        Raises:
            WriteError: If the transport rejects the write
        """
        if self._write_char is None:
            raise MissingWriteCharacteristicError()
        try:
            await self._write_char.write(data, True)
        except Exception as e:
            raise WriteError(str(e)) from e

    async def close(self) -> None:
        """Tear the connection down. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if not self._holding_guard:
            # open() was rejected or never called; the peripheral is not ours
            return

        if self._unregister_disconnect:
            self._unregister_disconnect()
            self._unregister_disconnect = None
        self._on_disconnect = None
        self._guard.release()
        self._holding_guard = False

        try:
            await asyncio.wait_for(self._peripheral.disconnect(), self._connect_timeout)
        except Exception as e:
            _LOGGER.debug("%s: Error during disconnect: %s", self.address, e)
        _LOGGER.debug("%s: Connection closed", self.address)
