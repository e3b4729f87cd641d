"""Exception classes for Fingerbot BLE communication errors."""

from __future__ import annotations


class FingerbotError(Exception):
    """Base class for all Fingerbot BLE errors."""


class ConfigurationError(FingerbotError):
    """Raised when required device configuration is missing or invalid."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing or invalid configuration value: {field}")
        self.field = field


class DeviceNotFoundError(FingerbotError):
    """Raised when the device was not seen after all scan attempts."""

    def __init__(self, address: str, attempts: int) -> None:
        super().__init__(
            f"Failed to find device {address} after {attempts} scan attempt(s)"
        )
        self.address = address
        self.attempts = attempts


class MissingWriteCharacteristicError(FingerbotError):
    """Raised when the connected device has no write characteristic."""

    def __init__(self) -> None:
        super().__init__("No write characteristic found")


class FingerbotTimeoutError(FingerbotError):
    """Base class for deadline errors."""


class ConnectionTimeoutError(FingerbotTimeoutError):
    """Raised when connecting to the device takes too long."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Connection timed out after {timeout:.1f}s")


class OperationTimeoutError(FingerbotTimeoutError):
    """Raised when a whole operation exceeds its deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Operation timed out after {timeout:.1f}s")


class UnexpectedDisconnectError(FingerbotError):
    """Raised when the device disconnects before the operation completes."""

    def __init__(self) -> None:
        super().__init__("Device disconnected during operation")


class BusyError(FingerbotError):
    """Raised when an operation is requested while another one is active."""

    def __init__(self, active: str | None = None) -> None:
        if active:
            super().__init__(f"Operation in progress: {active}")
        else:
            super().__init__("Operation in progress")
        self.active = active


class WriteError(FingerbotError):
    """Raised when writing a packet to the device fails."""

    def __init__(self, reason: str = "") -> None:
        super().__init__(f"Write failed: {reason}" if reason else "Write failed")


class EncodingError(FingerbotError):
    """Raised when a packet cannot be encoded."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Cannot encode packet: {reason}")


class EncryptionError(FingerbotError):
    """Raised when a payload cannot be encrypted or decrypted."""

    def __init__(self, reason: str = "") -> None:
        super().__init__(
            f"Payload encryption failed: {reason}" if reason
            else "Payload encryption failed"
        )
