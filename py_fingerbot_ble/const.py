"""Constants for Fingerbot BLE communication."""

from __future__ import annotations

from enum import Enum

# Packet framing
PACKET_HEADER = b"\x55\xaa"
SEQUENCE_MODULUS = 1 << 32

# BLE Characteristic UUIDs (16-bit short form and Bluetooth base form)
CHARACTERISTIC_NOTIFY_SHORT = "2b10"
CHARACTERISTIC_WRITE_SHORT = "2b11"
CHARACTERISTIC_NOTIFY = "00002b10-0000-1000-8000-00805f9b34fb"
CHARACTERISTIC_WRITE = "00002b11-0000-1000-8000-00805f9b34fb"

BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"

# Session key
SESSION_KEY_LENGTH = 16

# Datapoints
DEFAULT_SWITCH_DP_ID = 1
DEFAULT_BATTERY_DP_ID = 12

# Timing defaults (seconds)
DEFAULT_PRESS_TIME = 1.0
DEFAULT_SCAN_DURATION = 8.0
DEFAULT_SCAN_RETRIES = 3
DEFAULT_SCAN_RETRY_COOLDOWN = 2.0
DEFAULT_BATTERY_CHECK_INTERVAL = 60 * 60.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_OPERATION_TIMEOUT = 20.0
DEFAULT_STEP_DELAY = 0.3
DEFAULT_RESPONSE_TIMEOUT = 2.0
DEFAULT_SETTLE_DELAY = 0.5

# Diagnostics
DIAGNOSTIC_SCAN_DURATION = 5.0
DIAGNOSTIC_CONNECT_TIMEOUT = 8.0
DIAGNOSTIC_PACKET_INTERVAL = 0.3
DIAGNOSTIC_PROBE_INTERVAL = 1.0

# Adapter states reported by transports
ADAPTER_POWERED_ON = "poweredOn"
ADAPTER_POWERED_OFF = "poweredOff"


class FingerbotCommand(Enum):
    """Command codes of the Fingerbot BLE packet protocol."""

    LOGIN = 0x01
    HEARTBEAT = 0x02
    DP_COMMAND = 0x06
    STATUS_QUERY = 0x08


class DataPointType(Enum):
    """Wire types of a datapoint record."""

    RAW = 0x00      # Raw bytes data
    BOOL = 0x01     # Boolean value (True/False)
    VALUE = 0x02    # Unsigned 32-bit integer
    STRING = 0x03   # UTF-8 string


class PacketFormat(Enum):
    """Packet layouts the device may accept.

    SEQ32_BE is the layout used for normal operations; the others are only
    sent by the diagnostic probes.
    """

    SEQ16_BE = "seq16_be"
    SEQ32_BE = "seq32_be"
    SEQ16_LE = "seq16_le"
    NO_SEQUENCE = "no_sequence"


class FailurePolicy(Enum):
    """How the handshake reacts to write and encryption errors."""

    FAIL_OPEN = "fail_open"   # log and continue with the next step
    FAIL_FAST = "fail_fast"   # abort the operation
