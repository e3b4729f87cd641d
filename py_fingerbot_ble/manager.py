"""Device configuration management for Fingerbot BLE devices."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .const import (
    DEFAULT_BATTERY_CHECK_INTERVAL,
    DEFAULT_BATTERY_DP_ID,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_PRESS_TIME,
    DEFAULT_RESPONSE_TIMEOUT,
    DEFAULT_SCAN_DURATION,
    DEFAULT_SCAN_RETRIES,
    DEFAULT_SCAN_RETRY_COOLDOWN,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_STEP_DELAY,
    DEFAULT_SWITCH_DP_ID,
    FailurePolicy,
    PacketFormat,
)
from .exceptions import ConfigurationError

_LOGGER = logging.getLogger(__name__)

# Keys used by the legacy accessory configuration, with unit conversions
# to seconds (milliseconds, and minutes for the battery interval).
_LEGACY_KEYS = {
    "deviceId": ("device_id", None),
    "localKey": ("local_key", None),
    "pressTime": ("press_time", 1000.0),
    "scanDuration": ("scan_duration", 1000.0),
    "scanRetries": ("scan_retries", None),
    "scanRetryCooldown": ("scan_retry_cooldown", 1000.0),
    "batteryCheckInterval": ("battery_check_interval", 1 / 60.0),
}


@dataclass
class FingerbotConfig:
    """
    Credentials and operational parameters for one Fingerbot.

    All durations are in seconds. Each stage of an operation has its own
    deadline: discovery is bounded by scan_duration, scan_retries and
    scan_retry_cooldown, connection setup by connect_timeout, and the
    handshake by operation_timeout. operation_timeout starts once the
    connection is open and does not cover discovery or connecting.
    """

    address: str                 # BLE address, compared case-insensitively
    device_id: str               # Tuya device ID used to log in
    local_key: str               # Shared secret the session key is derived from
    name: str = "MOES Fingerbot"
    press_time: float = DEFAULT_PRESS_TIME
    scan_duration: float = DEFAULT_SCAN_DURATION
    scan_retries: int = DEFAULT_SCAN_RETRIES
    scan_retry_cooldown: float = DEFAULT_SCAN_RETRY_COOLDOWN
    battery_check_interval: float = DEFAULT_BATTERY_CHECK_INTERVAL
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    operation_timeout: float = DEFAULT_OPERATION_TIMEOUT  # handshake only
    step_delay: float = DEFAULT_STEP_DELAY
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT
    settle_delay: float = DEFAULT_SETTLE_DELAY
    switch_dp_id: int = DEFAULT_SWITCH_DP_ID
    battery_dp_id: int = DEFAULT_BATTERY_DP_ID
    failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN
    packet_format: PacketFormat = PacketFormat.SEQ32_BE

    def __post_init__(self) -> None:
        for field in ("address", "device_id", "local_key"):
            if not getattr(self, field):
                raise ConfigurationError(field)
        self.address = self.address.lower()
        if not isinstance(self.failure_policy, FailurePolicy):
            self.failure_policy = FailurePolicy(self.failure_policy)
        if not isinstance(self.packet_format, PacketFormat):
            self.packet_format = PacketFormat(self.packet_format)
        if self.scan_retries < 1:
            raise ConfigurationError("scan_retries")

    def __str__(self):
        """Return a string representation with sensitive data masked."""
        return (
            f"address: {self.address}, "
            "device_id: xxxxxxxxxxxxxxxx, "
            "local_key: xxxxxxxxxxxxxxxx, "
            f"name: {self.name}, "
            f"press_time: {self.press_time}, "
            f"scan_duration: {self.scan_duration}, "
            f"scan_retries: {self.scan_retries}"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FingerbotConfig:
        """
        Create a config from a mapping.

        Accepts snake_case keys in seconds as well as the camelCase keys of
        the legacy accessory configuration (milliseconds, minutes).

        Raises:
            ConfigurationError: If credentials are missing
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key in _LEGACY_KEYS:
                name, scale = _LEGACY_KEYS[key]
                if value is not None and scale is not None:
                    value = float(value) / scale
                values.setdefault(name, value)
            elif key in known:
                values[key] = value

        for field in ("address", "device_id", "local_key"):
            if not values.get(field):
                raise ConfigurationError(field)

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable dictionary."""
        data = asdict(self)
        data["failure_policy"] = self.failure_policy.value
        data["packet_format"] = self.packet_format.value
        return data


class FingerbotConfigManager:
    """
    Manager for storing and retrieving Fingerbot configurations.

    This implementation stores configurations in a local JSON file keyed by
    device address.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        """
        Initialize the config manager.

        Args:
            storage_path: Path to the JSON file for storing configurations.
                         Defaults to ~/.py_fingerbot_ble/devices.json
        """
        if storage_path is None:
            storage_path = Path.home() / ".py_fingerbot_ble" / "devices.json"

        self.storage_path = Path(storage_path)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        self._devices: Dict[str, FingerbotConfig] = {}
        self._load_devices()

    def _load_devices(self) -> None:
        """Load devices from storage file."""
        if not self.storage_path.exists():
            return
        try:
            with open(self.storage_path, "r") as f:
                data = json.load(f)
            for address, device_data in data.items():
                self._devices[address.lower()] = FingerbotConfig.from_dict(device_data)
        except (json.JSONDecodeError, TypeError, ValueError, ConfigurationError) as e:
            _LOGGER.error("Error loading devices from %s: %s", self.storage_path, e)

    def _save_devices(self) -> None:
        """Save devices to storage file."""
        data = {
            address: config.to_dict()
            for address, config in self._devices.items()
        }
        with open(self.storage_path, "w") as f:
            json.dump(data, f, indent=2)

    def get_device_config(self, address: str) -> Optional[FingerbotConfig]:
        """
        Get the configuration of a device by its address.

        Returns:
            The config if found, None otherwise
        """
        return self._devices.get(address.lower())

    def add_device(self, config: FingerbotConfig) -> FingerbotConfig:
        """Add or update a device and persist the change."""
        self._devices[config.address] = config
        self._save_devices()
        return config

    def remove_device(self, address: str) -> bool:
        """
        Remove a device from the manager.

        Returns:
            True if device was removed, False if not found
        """
        address = address.lower()
        if address in self._devices:
            del self._devices[address]
            self._save_devices()
            return True
        return False

    def list_devices(self) -> Dict[str, FingerbotConfig]:
        """Return all stored devices keyed by address."""
        return self._devices.copy()
