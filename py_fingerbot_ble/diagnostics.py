"""
Diagnostic probes for devices that do not respond to the standard handshake.

Each probe connects to the device and sends a short list of plaintext
packets in one of the known packet layouts. A probe that completes
without a transport error is reported as working.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .codec import Session, encode_packet
from .connection import ConnectionLifecycle
from .const import (
    DEFAULT_SETTLE_DELAY,
    DIAGNOSTIC_PACKET_INTERVAL,
    DataPointType,
    FingerbotCommand,
    PacketFormat,
)
from .datapoints import encode_dp
from .exceptions import UnexpectedDisconnectError, WriteError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbePacket:
    """One packet of a probe."""

    command: int
    payload: bytes = b""
    packet_format: PacketFormat = PacketFormat.SEQ16_BE
    delay: float = 0.0  # extra wait before this packet


@dataclass(frozen=True)
class DiagnosticProbe:
    """A named list of packets to try."""

    name: str
    packets: Tuple[ProbePacket, ...]


@dataclass
class ProbeResult:
    """Outcome of one probe."""

    name: str
    ok: bool
    response_received: bool = False
    error: Optional[str] = None
    responses: List[bytes] = field(default_factory=list)


def default_probes(switch_dp_id: int = 1) -> List[DiagnosticProbe]:
    """Return the standard probe list, most likely layout first."""
    dp_cmd = FingerbotCommand.DP_COMMAND.value
    dp_on = encode_dp(switch_dp_id, DataPointType.BOOL, True)
    dp_off = encode_dp(switch_dp_id, DataPointType.BOOL, False)

    return [
        DiagnosticProbe(
            f"DP cmd 0x06, DP{switch_dp_id}, BOOL true",
            (ProbePacket(dp_cmd, dp_on),),
        ),
        DiagnosticProbe(
            f"DP cmd 0x06, DP{switch_dp_id}, BOOL false",
            (ProbePacket(dp_cmd, dp_off),),
        ),
        DiagnosticProbe("Direct cmd 0x04 with data", (ProbePacket(0x04, b"\x01"),)),
        DiagnosticProbe("Direct cmd 0x07 (alternative)", (ProbePacket(0x07, b"\x01"),)),
        DiagnosticProbe(
            "DP cmd with 4-byte seq",
            (ProbePacket(dp_cmd, dp_on, PacketFormat.SEQ32_BE),),
        ),
        DiagnosticProbe(
            "DP cmd with LE byte order",
            (ProbePacket(dp_cmd, dp_on, PacketFormat.SEQ16_LE),),
        ),
        DiagnosticProbe(
            "Minimal packet format",
            (ProbePacket(dp_cmd, dp_on, PacketFormat.NO_SEQUENCE),),
        ),
        DiagnosticProbe(
            "Press+Release sequence",
            (ProbePacket(dp_cmd, dp_on), ProbePacket(dp_cmd, dp_off)),
        ),
        DiagnosticProbe(
            "DP2 instead of DP1",
            (ProbePacket(dp_cmd, encode_dp(2, DataPointType.BOOL, True)),),
        ),
        DiagnosticProbe(
            "Integer DP instead of bool",
            (ProbePacket(dp_cmd, encode_dp(switch_dp_id, DataPointType.VALUE, 1)),),
        ),
        DiagnosticProbe("Raw Tuya command 0x03", (ProbePacket(0x03, b"\x01\x00"),)),
        DiagnosticProbe(
            "Single toggle command",
            (ProbePacket(dp_cmd, dp_on), ProbePacket(dp_cmd, dp_off, delay=0.1)),
        ),
    ]


class ProbeRunner:
    """Send the packets of one probe over an open connection."""

    def __init__(
        self,
        connection: ConnectionLifecycle,
        session: Session,
        packet_interval: float = DIAGNOSTIC_PACKET_INTERVAL,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ) -> None:
        self._connection = connection
        self._session = session
        self._packet_interval = packet_interval
        self._settle_delay = settle_delay
        self._disconnected = False
        self.responses: List[bytes] = []

    @property
    def response_received(self) -> bool:
        """Check if the device sent any notification during the probe."""
        return len(self.responses) > 0

    def handle_response(self, data: bytes) -> None:
        """Notification callback for the connection."""
        _LOGGER.info(
            "%s: [DIAGNOSTIC] Response received: %s", self._connection.address, data.hex()
        )
        self.responses.append(bytes(data))

    def handle_disconnect(self) -> None:
        """Disconnect callback for the connection."""
        self._disconnected = True

    def _check_connected(self) -> None:
        if self._disconnected:
            raise UnexpectedDisconnectError()

    async def run(self, probe: DiagnosticProbe) -> None:
        """
        Send every packet of the probe, then wait for late responses.

        Raises:
            UnexpectedDisconnectError: If the device disconnects during the probe
        """
        address = self._connection.address
        for index, packet in enumerate(probe.packets, start=1):
            if packet.delay:
                await asyncio.sleep(packet.delay)
            self._check_connected()

            data = encode_packet(
                self._session,
                packet.command,
                packet.payload,
                encrypt=False,
                packet_format=packet.packet_format,
            )
            _LOGGER.info(
                "%s: [DIAGNOSTIC] Sending packet %s: %s", address, index, data.hex()
            )
            try:
                await self._connection.write(data)
            except WriteError as e:
                _LOGGER.warning("%s: [DIAGNOSTIC] Write error: %s", address, e)
            await asyncio.sleep(self._packet_interval)

        await asyncio.sleep(self._settle_delay)
        self._check_connected()

        if self.response_received:
            _LOGGER.info(
                "%s: [DIAGNOSTIC] Probe %r got device response", address, probe.name
            )
        else:
            _LOGGER.info(
                "%s: [DIAGNOSTIC] Probe %r completed but no response received",
                address,
                probe.name,
            )
