"""Switch and battery façade for home automation hosts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, List, Mapping, Optional, Union

from .bleak_transport import BleakTransport
from .device import FingerbotDevice
from .manager import FingerbotConfig
from .transport import BLETransport

_LOGGER = logging.getLogger(__name__)


class FingerbotAccessory:
    """
    A Fingerbot presented as a momentary switch with a battery level.

    Turning the switch on presses the button once; the switch reports on
    for the press time and then turns itself off. Turning it off does
    nothing.
    """

    def __init__(
        self,
        config: Union[FingerbotConfig, Mapping[str, Any]],
        transport: Optional[BLETransport] = None,
    ) -> None:
        """
        Initialize the accessory.

        Args:
            config: A FingerbotConfig, or a mapping accepted by FingerbotConfig.from_dict
            transport: BLE transport; a BleakTransport is created if omitted

        Raises:
            ConfigurationError: If the credentials are missing
        """
        if not isinstance(config, FingerbotConfig):
            config = FingerbotConfig.from_dict(config)
        if transport is None:
            transport = BleakTransport()

        self._device = FingerbotDevice(config, transport)
        self._is_on = False
        self._reset_handle: Optional[asyncio.TimerHandle] = None
        self._callbacks: List[Callable[[bool], None]] = []

    @property
    def name(self) -> str:
        """Get the accessory name."""
        return self._device.name

    @property
    def device(self) -> FingerbotDevice:
        """Get the underlying device."""
        return self._device

    @property
    def is_on(self) -> bool:
        """Get the transient switch state."""
        return self._is_on

    @property
    def battery_level(self) -> int:
        """Get the cached battery percentage; may start a background refresh."""
        return self._device.battery.read()

    def register_callback(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """
        Register a callback for switch state changes.

        Returns:
            Function to unregister the callback
        """

        def unregister_callback() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        self._callbacks.append(callback)
        return unregister_callback

    def _set_state(self, value: bool) -> None:
        self._is_on = value
        for callback in self._callbacks:
            callback(value)

    async def set_on(self, value: bool) -> None:
        """
        Set the switch state.

        Raises:
            BusyError: If an operation is already in progress
            FingerbotError: If the press failed; the state is left unchanged
        """
        _LOGGER.info("%s: Setting power state to: %s", self.name, value)
        if not value:
            return

        await self._device.press()

        self._set_state(True)
        if self._reset_handle is not None:
            self._reset_handle.cancel()
        self._reset_handle = asyncio.get_running_loop().call_later(
            self._device.config.press_time, self._auto_reset
        )

    def _auto_reset(self) -> None:
        self._reset_handle = None
        self._set_state(False)

    def close(self) -> None:
        """Cancel pending timers and detach from the transport."""
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._device.close()
