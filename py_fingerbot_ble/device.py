"""Core Fingerbot BLE device implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from .codec import Session
from .connection import ConnectionLifecycle
from .const import (
    ADAPTER_POWERED_ON,
    DEFAULT_SETTLE_DELAY,
    DIAGNOSTIC_CONNECT_TIMEOUT,
    DIAGNOSTIC_PACKET_INTERVAL,
    DIAGNOSTIC_PROBE_INTERVAL,
    DIAGNOSTIC_SCAN_DURATION,
)
from .diagnostics import DiagnosticProbe, ProbeResult, ProbeRunner, default_probes
from .discovery import DiscoveryEngine
from .exceptions import ConnectionTimeoutError, FingerbotError
from .guard import OperationGuard
from .manager import FingerbotConfig
from .sequencer import HandshakeSequencer, OperationKind
from .status import BatteryMonitor
from .transport import BLEPeripheral, BLETransport

_LOGGER = logging.getLogger(__name__)


class FingerbotDevice:
    """
    Main class for driving a Fingerbot over BLE.

    Every operation (press, battery query, diagnostics) scans for the
    device, connects, runs its packet sequence and disconnects again. Only
    one operation runs at a time; a second request fails with BusyError.
    """

    def __init__(self, config: FingerbotConfig, transport: BLETransport) -> None:
        """
        Initialize a Fingerbot device.

        Args:
            config: Credentials and timing parameters
            transport: The BLE transport used for scanning and connecting
        """
        self._config = config
        self._transport = transport
        self._operations = OperationGuard(f"{config.address} operations")
        self._connections = OperationGuard(f"{config.address} connections")
        self._battery = BatteryMonitor(
            self.query_battery,
            config.battery_check_interval,
            config.battery_dp_id,
        )
        self._current_peripheral: Optional[BLEPeripheral] = None
        self._background_tasks: Set[asyncio.Task] = set()
        self._unregister_state = transport.add_state_listener(self._on_adapter_state)

    @property
    def address(self) -> str:
        """Get the configured device address."""
        return self._config.address

    @property
    def name(self) -> str:
        """Get the device name."""
        return self._config.name

    @property
    def config(self) -> FingerbotConfig:
        """Get the device configuration."""
        return self._config

    @property
    def battery(self) -> BatteryMonitor:
        """Get the battery monitor."""
        return self._battery

    @property
    def is_busy(self) -> bool:
        """Check if an operation is in progress."""
        return self._operations.active

    @property
    def current_operation(self) -> Optional[str]:
        """Get the name of the running operation."""
        return self._operations.label

    async def press(self) -> None:
        """
        Press and release the button once.

        Raises:
            BusyError: If another operation is in progress
            DeviceNotFoundError: If the device was not found
            FingerbotError: If the operation failed
        """
        await self._run_operation(OperationKind.PRESS)

    async def query_battery(self) -> Optional[int]:
        """
        Query the device status and return the battery level.

        Returns:
            The battery percentage if the device reported one, else None
        """
        sequencer = await self._run_operation(OperationKind.BATTERY_QUERY)
        self._battery.mark_checked()
        return sequencer.battery_level

    def close(self) -> None:
        """Stop listening to adapter state changes."""
        self._unregister_state()

    def _create_session(self) -> Session:
        return Session.create(
            self._config.device_id,
            self._config.local_key,
            self._config.failure_policy,
        )

    def _discovery(
        self,
        scan_duration: Optional[float] = None,
        scan_retries: Optional[int] = None,
    ) -> DiscoveryEngine:
        return DiscoveryEngine(
            self._transport,
            self._config.address,
            scan_duration if scan_duration is not None else self._config.scan_duration,
            scan_retries if scan_retries is not None else self._config.scan_retries,
            self._config.scan_retry_cooldown,
        )

    async def _run_operation(self, kind: OperationKind) -> HandshakeSequencer:
        with self._operations.hold(kind.value):
            _LOGGER.info("%s: Starting %s", self.address, kind.value)
            session = self._create_session()
            try:
                peripheral = await self._discovery().discover()
                self._current_peripheral = peripheral
                async with ConnectionLifecycle(
                    peripheral, self._connections, self._config.connect_timeout
                ) as connection:
                    sequencer = HandshakeSequencer(
                        connection, session, kind, self._config, self._battery
                    )
                    await connection.open(
                        sequencer.handle_response, sequencer.handle_disconnect
                    )
                    await sequencer.run()
            except FingerbotError as e:
                _LOGGER.error("%s: %s failed: %s", self.address, kind.value, e)
                raise
            finally:
                self._current_peripheral = None

            _LOGGER.info("%s: %s completed", self.address, kind.value)
            return sequencer

    async def run_diagnostics(
        self,
        probes: Optional[List[DiagnosticProbe]] = None,
        scan_duration: float = DIAGNOSTIC_SCAN_DURATION,
        timeout: float = DIAGNOSTIC_CONNECT_TIMEOUT,
        packet_interval: float = DIAGNOSTIC_PACKET_INTERVAL,
        probe_interval: float = DIAGNOSTIC_PROBE_INTERVAL,
    ) -> List[ProbeResult]:
        """
        Try packet layouts one by one until one is accepted.

        Each probe gets one scan of ``scan_duration`` seconds and
        ``timeout`` seconds to connect and send. Probing stops at the first
        probe that completes.

        Returns:
            One result per probe tried; the last one is ok if a probe worked
        """
        if probes is None:
            probes = default_probes(self._config.switch_dp_id)

        results: List[ProbeResult] = []
        with self._operations.hold("diagnostics"):
            _LOGGER.info("%s: [DIAGNOSTIC] Starting %s probes", self.address, len(probes))
            for index, probe in enumerate(probes, start=1):
                _LOGGER.info(
                    "%s: [DIAGNOSTIC] Test %s/%s: %s",
                    self.address,
                    index,
                    len(probes),
                    probe.name,
                )
                runner: Optional[ProbeRunner] = None
                try:
                    peripheral = await self._discovery(scan_duration, 1).discover()
                    self._current_peripheral = peripheral
                    async with ConnectionLifecycle(
                        peripheral, self._connections, timeout
                    ) as connection:
                        runner = ProbeRunner(
                            connection,
                            self._create_session(),
                            packet_interval,
                            DEFAULT_SETTLE_DELAY,
                        )
                        try:
                            await asyncio.wait_for(
                                self._run_probe(connection, runner, probe), timeout
                            )
                        except asyncio.TimeoutError as e:
                            raise ConnectionTimeoutError(timeout) from e
                except FingerbotError as e:
                    _LOGGER.info("%s: [DIAGNOSTIC] Test failed: %s", self.address, e)
                    results.append(
                        ProbeResult(
                            probe.name,
                            False,
                            runner.response_received if runner else False,
                            str(e),
                            list(runner.responses) if runner else [],
                        )
                    )
                    if index < len(probes):
                        await asyncio.sleep(probe_interval)
                    continue
                finally:
                    self._current_peripheral = None

                _LOGGER.info(
                    "%s: [DIAGNOSTIC] SUCCESS! Working protocol found: %s",
                    self.address,
                    probe.name,
                )
                results.append(
                    ProbeResult(
                        probe.name,
                        True,
                        runner.response_received,
                        None,
                        list(runner.responses),
                    )
                )
                return results

        _LOGGER.error("%s: [DIAGNOSTIC] All probes failed", self.address)
        return results

    @staticmethod
    async def _run_probe(
        connection: ConnectionLifecycle,
        runner: ProbeRunner,
        probe: DiagnosticProbe,
    ) -> None:
        await connection.open(runner.handle_response, runner.handle_disconnect)
        await runner.run(probe)

    def force_disconnect(self) -> None:
        """Drop the current connection, if any, without waiting."""
        peripheral = self._current_peripheral
        if peripheral is None:
            return
        _LOGGER.debug("%s: Forcing disconnect", self.address)
        try:
            task = asyncio.get_running_loop().create_task(
                self._disconnect_quietly(peripheral)
            )
        except RuntimeError:
            _LOGGER.debug("%s: No running event loop for disconnect", self.address)
            return
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _disconnect_quietly(self, peripheral: BLEPeripheral) -> None:
        try:
            await peripheral.disconnect()
        except Exception as e:
            _LOGGER.debug("%s: Error during forced disconnect: %s", self.address, e)

    def _on_adapter_state(self, state: str) -> None:
        if state == ADAPTER_POWERED_ON:
            _LOGGER.info("Bluetooth adapter is powered on")
        else:
            _LOGGER.warning("Bluetooth adapter is powered off or unavailable")
            self.force_disconnect()
