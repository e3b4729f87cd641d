"""
py_fingerbot_ble - A standalone Python library for Fingerbot BLE devices.

This library drives Tuya-style BLE button pushers (MOES Fingerbot and
compatible devices) directly over Bluetooth Low Energy, independent of any
home automation framework.

Main Features:
- Device discovery with bounded scan retries
- Session key derivation and AES payload encryption
- Login / heartbeat / status / press / release handshake
- Battery level extraction with a rate-limited cache
- Diagnostic probes for unknown packet layouts
- Asynchronous operation using asyncio
"""

from .accessory import FingerbotAccessory
from .bleak_transport import BleakTransport
from .codec import Session, checksum, encode_packet, frame_packet, verify_checksum
from .const import DataPointType, FailurePolicy, FingerbotCommand, PacketFormat
from .crypto import decrypt_payload, derive_session_key, encrypt_payload
from .datapoints import decode_dp_value, encode_dp, find_dp
from .device import FingerbotDevice
from .diagnostics import DiagnosticProbe, ProbePacket, ProbeResult, default_probes
from .exceptions import (
    BusyError,
    ConfigurationError,
    ConnectionTimeoutError,
    DeviceNotFoundError,
    EncodingError,
    EncryptionError,
    FingerbotError,
    FingerbotTimeoutError,
    MissingWriteCharacteristicError,
    OperationTimeoutError,
    UnexpectedDisconnectError,
    WriteError,
)
from .manager import FingerbotConfig, FingerbotConfigManager
from .sequencer import HandshakeStateMachine, OperationKind, SequenceEvent, Step
from .transport import BLECharacteristic, BLEPeripheral, BLETransport

__version__ = "0.1.0"

__all__ = [
    # Core device classes
    "FingerbotAccessory",
    "FingerbotDevice",
    # Transport
    "BLETransport",
    "BLEPeripheral",
    "BLECharacteristic",
    "BleakTransport",
    # Configuration
    "FingerbotConfig",
    "FingerbotConfigManager",
    # Protocol
    "Session",
    "checksum",
    "encode_packet",
    "frame_packet",
    "verify_checksum",
    "derive_session_key",
    "encrypt_payload",
    "decrypt_payload",
    "encode_dp",
    "decode_dp_value",
    "find_dp",
    "HandshakeStateMachine",
    "OperationKind",
    "SequenceEvent",
    "Step",
    # Diagnostics
    "DiagnosticProbe",
    "ProbePacket",
    "ProbeResult",
    "default_probes",
    # Constants
    "DataPointType",
    "FailurePolicy",
    "FingerbotCommand",
    "PacketFormat",
    # Exceptions
    "FingerbotError",
    "BusyError",
    "ConfigurationError",
    "ConnectionTimeoutError",
    "DeviceNotFoundError",
    "EncodingError",
    "EncryptionError",
    "FingerbotTimeoutError",
    "MissingWriteCharacteristicError",
    "OperationTimeoutError",
    "UnexpectedDisconnectError",
    "WriteError",
]
