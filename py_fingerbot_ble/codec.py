"""Packet framing and per-operation session state."""

from __future__ import annotations

import logging
import secrets
from struct import pack
from typing import Optional, Union

from .const import (
    PACKET_HEADER,
    SEQUENCE_MODULUS,
    FailurePolicy,
    FingerbotCommand,
    PacketFormat,
)
from .crypto import derive_session_key, encrypt_payload
from .exceptions import EncodingError, EncryptionError

_LOGGER = logging.getLogger(__name__)

Command = Union[FingerbotCommand, int]


class Session:
    """
    Protocol state for a single connection attempt.

    A session is created at the start of every operation and thrown away
    when the operation ends; it is never reused.
    """

    def __init__(
        self,
        device_id: str,
        session_key: Optional[bytes],
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        sequence: Optional[int] = None,
    ) -> None:
        self.device_id = device_id
        self.session_key = session_key
        self.failure_policy = failure_policy
        # Random start avoids colliding with the previous session's numbers
        self._sequence = (
            secrets.randbits(32) if sequence is None else sequence % SEQUENCE_MODULUS
        )
        self.authenticated = False

    @classmethod
    def create(
        cls,
        device_id: str,
        local_key: Optional[str],
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
    ) -> Session:
        """Create a fresh session, deriving the key from the local key."""
        session_key = derive_session_key(local_key) if local_key else None
        return cls(device_id, session_key, failure_policy)

    @property
    def sequence(self) -> int:
        """Get the last sequence number used."""
        return self._sequence

    def next_sequence(self) -> int:
        """Advance the counter and return the new value."""
        self._sequence = (self._sequence + 1) % SEQUENCE_MODULUS
        return self._sequence


def checksum(data: bytes) -> int:
    """Additive checksum of all bytes, truncated to one byte."""
    return sum(data) & 0xFF


def verify_checksum(packet: bytes) -> bool:
    """Check that the last byte of a packet is the checksum of the rest."""
    if len(packet) < 2:
        return False
    return checksum(packet[:-1]) == packet[-1]


def _command_code(command: Command) -> int:
    if isinstance(command, FingerbotCommand):
        return command.value
    return int(command) & 0xFF


def frame_packet(
    sequence: int,
    command: Command,
    payload: bytes = b"",
    packet_format: PacketFormat = PacketFormat.SEQ32_BE,
) -> bytes:
    """
    Serialize a packet.

    Standard layout: [0x55 0xAA][seq:4 BE][cmd:1][len:2 BE][payload][checksum:1]
    """
    if len(payload) > 0xFFFF:
        raise EncodingError(f"payload too long ({len(payload)} bytes)")

    code = _command_code(command)
    raw = bytearray(PACKET_HEADER)

    match packet_format:
        case PacketFormat.SEQ32_BE:
            raw += pack(">IBH", sequence & 0xFFFFFFFF, code, len(payload))
        case PacketFormat.SEQ16_BE:
            raw += pack(">HBH", sequence & 0xFFFF, code, len(payload))
        case PacketFormat.SEQ16_LE:
            raw += pack("<HBH", sequence & 0xFFFF, code, len(payload))
        case PacketFormat.NO_SEQUENCE:
            raw += pack(">BH", code, len(payload))

    raw += payload
    raw.append(checksum(raw))
    return bytes(raw)


def encode_packet(
    session: Session,
    command: Command,
    payload: bytes = b"",
    encrypt: Optional[bool] = None,
    packet_format: PacketFormat = PacketFormat.SEQ32_BE,
) -> bytes:
    """
    Build the next packet of a session.

    Every command except LOGIN is encrypted unless ``encrypt`` says
    otherwise. The sequence number is incremented before use.

    Raises:
        EncodingError: If encryption is required but the session has no key
        EncryptionError: If encryption fails under the fail-fast policy
    """
    if encrypt is None:
        encrypt = command != FingerbotCommand.LOGIN

    data = bytes(payload)
    if encrypt:
        if session.session_key is None:
            raise EncodingError("no session key for encrypted command")
        try:
            data = encrypt_payload(session.session_key, session.device_id, data)
        except EncryptionError as e:
            if session.failure_policy is FailurePolicy.FAIL_FAST:
                raise
            _LOGGER.warning("Encryption failed, sending plaintext payload: %s", e)

    return frame_packet(session.next_sequence(), command, data, packet_format)
