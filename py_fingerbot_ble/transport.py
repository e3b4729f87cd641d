"""Interface for the BLE transport consumed by the protocol engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from .const import BLUETOOTH_BASE_UUID_SUFFIX


def short_uuid(uuid: str) -> str:
    """
    Normalise a characteristic UUID for comparison.

    Bluetooth base UUIDs ("00002b11-0000-1000-8000-00805f9b34fb") are
    reduced to their 16-bit form ("2b11"); other UUIDs are lower-cased.
    """
    uuid = uuid.lower()
    if uuid.endswith(BLUETOOTH_BASE_UUID_SUFFIX) and uuid.startswith("0000"):
        return uuid[4:8]
    return uuid


class BLECharacteristic(ABC):
    """A GATT characteristic of a connected peripheral."""

    @property
    @abstractmethod
    def uuid(self) -> str:
        """Get the characteristic UUID."""

    @abstractmethod
    async def write(self, data: bytes, without_response: bool = True) -> None:
        """Write data to the characteristic.

        Args:
            data: The bytes to write.
            without_response: Use a write command instead of a write request.
        """

    @abstractmethod
    async def subscribe(self, callback: Callable[[bytes], None]) -> None:
        """Enable notifications and deliver each received value to callback."""


class BLEPeripheral(ABC):
    """A discovered peripheral that can be connected to."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Get the transport address of the peripheral."""

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the peripheral."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the peripheral."""

    @abstractmethod
    async def discover_characteristics(self) -> list[BLECharacteristic]:
        """Return every characteristic of every service."""

    @abstractmethod
    def add_disconnect_listener(
        self, callback: Callable[[], None]
    ) -> Callable[[], None]:
        """Register a disconnect observer.

        Returns:
            Function to unregister the observer
        """


class BLETransport(ABC):
    """Process-wide BLE adapter: scanning and adapter state."""

    @abstractmethod
    async def start_scanning(self) -> None:
        """Start scanning for peripherals."""

    @abstractmethod
    async def stop_scanning(self) -> None:
        """Stop scanning. Must be safe to call when not scanning."""

    @abstractmethod
    def add_discovery_listener(
        self, callback: Callable[[BLEPeripheral], None]
    ) -> Callable[[], None]:
        """Register a callback for discovered peripherals.

        Returns:
            Function to unregister the callback
        """

    @abstractmethod
    def clear_discovery_listeners(self) -> None:
        """Remove every registered discovery callback."""

    @abstractmethod
    def add_state_listener(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register a callback for adapter power-state changes.

        Returns:
            Function to unregister the callback
        """
