"""BLE transport implementation backed by bleak."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, List, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .const import ADAPTER_POWERED_OFF, ADAPTER_POWERED_ON
from .transport import BLECharacteristic, BLEPeripheral, BLETransport

_LOGGER = logging.getLogger(__name__)


class BleakCharacteristic(BLECharacteristic):
    """A characteristic of a connected BleakClient."""

    def __init__(self, client: BleakClient, characteristic: BleakGATTCharacteristic) -> None:
        self._client = client
        self._characteristic = characteristic

    @property
    def uuid(self) -> str:
        """Get the characteristic UUID."""
        return self._characteristic.uuid

    async def write(self, data: bytes, without_response: bool = True) -> None:
        """Write data to the characteristic."""
        await self._client.write_gatt_char(
            self._characteristic, data, response=not without_response
        )

    async def subscribe(self, callback: Callable[[bytes], None]) -> None:
        """Start notifications on the characteristic."""

        def _handle_notification(_: Any, data: bytearray) -> None:
            callback(bytes(data))

        await self._client.start_notify(self._characteristic, _handle_notification)


class BleakPeripheral(BLEPeripheral):
    """A discovered device, connected on demand through BleakClient."""

    def __init__(
        self,
        ble_device: BLEDevice,
        advertisement_data: Optional[AdvertisementData] = None,
    ) -> None:
        self._ble_device = ble_device
        self._advertisement_data = advertisement_data
        self._client: Optional[BleakClient] = None
        self._disconnect_listeners: List[Callable[[], None]] = []

    @property
    def address(self) -> str:
        """Get the device MAC address."""
        return self._ble_device.address

    @property
    def rssi(self) -> Optional[int]:
        """Get the device RSSI."""
        if self._advertisement_data:
            return self._advertisement_data.rssi
        return None

    @property
    def is_connected(self) -> bool:
        """Check if the device is connected."""
        return self._client is not None and self._client.is_connected

    def _on_disconnected(self, _: BleakClient) -> None:
        _LOGGER.debug("%s: Disconnected from device", self.address)
        for callback in list(self._disconnect_listeners):
            callback()

    async def connect(self) -> None:
        """Connect to the device."""
        _LOGGER.debug("%s: Connecting; RSSI: %s", self.address, self.rssi)
        self._client = BleakClient(
            self._ble_device, disconnected_callback=self._on_disconnected
        )
        await self._client.connect()
        _LOGGER.debug("%s: Connected; RSSI: %s", self.address, self.rssi)

    async def disconnect(self) -> None:
        """Disconnect from the device."""
        client = self._client
        self._client = None
        if client and client.is_connected:
            await client.disconnect()

    async def discover_characteristics(self) -> list[BLECharacteristic]:
        """Return all characteristics of the connected device."""
        if self._client is None:
            raise BleakError("Not connected")
        characteristics: list[BLECharacteristic] = []
        for service in self._client.services:
            for characteristic in service.characteristics:
                characteristics.append(BleakCharacteristic(self._client, characteristic))
        return characteristics

    def add_disconnect_listener(
        self, callback: Callable[[], None]
    ) -> Callable[[], None]:
        """Register a disconnect observer."""

        def unregister_callback() -> None:
            if callback in self._disconnect_listeners:
                self._disconnect_listeners.remove(callback)

        self._disconnect_listeners.append(callback)
        return unregister_callback


class BleakTransport(BLETransport):
    """Scanning and adapter state through BleakScanner."""

    def __init__(self) -> None:
        self._scanner: Optional[BleakScanner] = None
        self._scanning = False
        self._adapter_state: Optional[str] = None
        self._discovery_listeners: List[Callable[[BLEPeripheral], None]] = []
        self._state_listeners: List[Callable[[str], None]] = []

    @property
    def adapter_state(self) -> Optional[str]:
        """Get the last reported adapter state."""
        return self._adapter_state

    def _set_adapter_state(self, state: str) -> None:
        if state == self._adapter_state:
            return
        self._adapter_state = state
        _LOGGER.debug("Bluetooth adapter state changed: %s", state)
        for callback in list(self._state_listeners):
            callback(state)

    def _on_device_detected(
        self, device: BLEDevice, advertisement_data: AdvertisementData
    ) -> None:
        peripheral = BleakPeripheral(device, advertisement_data)
        for callback in list(self._discovery_listeners):
            callback(peripheral)

    async def start_scanning(self) -> None:
        """Start a scan; duplicates are reported."""
        if self._scanning:
            return
        if self._scanner is None:
            self._scanner = BleakScanner(detection_callback=self._on_device_detected)
        try:
            await self._scanner.start()
        except BleakError:
            self._set_adapter_state(ADAPTER_POWERED_OFF)
            raise
        self._scanning = True
        self._set_adapter_state(ADAPTER_POWERED_ON)

    async def stop_scanning(self) -> None:
        """Stop the scan if one is running."""
        if not self._scanning or self._scanner is None:
            return
        self._scanning = False
        await self._scanner.stop()

    def add_discovery_listener(
        self, callback: Callable[[BLEPeripheral], None]
    ) -> Callable[[], None]:
        """Register a callback for discovered peripherals."""

        def unregister_callback() -> None:
            if callback in self._discovery_listeners:
                self._discovery_listeners.remove(callback)

        self._discovery_listeners.append(callback)
        return unregister_callback

    def clear_discovery_listeners(self) -> None:
        """Remove every discovery callback."""
        self._discovery_listeners.clear()

    def add_state_listener(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register a callback for adapter state changes."""

        def unregister_callback() -> None:
            if callback in self._state_listeners:
                self._state_listeners.remove(callback)

        self._state_listeners.append(callback)
        return unregister_callback
