"""Datapoint (DP) record encoding and tolerant decoding."""

from __future__ import annotations

import logging
from collections.abc import Callable
from struct import pack
from typing import Optional, Union

from .const import DataPointType
from .exceptions import EncodingError

_LOGGER = logging.getLogger(__name__)

DataPointValue = Union[bytes, bool, int, str]

DP_HEADER_LENGTH = 4


def _type_code(dp_type: Union[DataPointType, int]) -> int:
    if isinstance(dp_type, DataPointType):
        return dp_type.value
    return int(dp_type) & 0xFF


def _as_type(dp_type: Union[DataPointType, int]) -> Union[DataPointType, int]:
    if isinstance(dp_type, DataPointType):
        return dp_type
    try:
        return DataPointType(dp_type)
    except ValueError:
        return dp_type


def _encode_value(dp_type: Union[DataPointType, int], value: DataPointValue) -> bytes:
    match _as_type(dp_type):
        case DataPointType.BOOL:
            return pack(">B", 1 if value else 0)
        case DataPointType.VALUE:
            if not 0 <= int(value) <= 0xFFFFFFFF:
                raise EncodingError(f"integer datapoint out of range: {value}")
            return pack(">I", int(value))
        case DataPointType.STRING:
            return str(value).encode("utf-8")
        case DataPointType.RAW:
            return bytes(value)
        case _:
            # Unknown wire type: a single raw byte
            if isinstance(value, (bytes, bytearray)):
                return bytes(value[:1]).ljust(1, b"\x00")
            return pack(">B", int(value) & 0xFF)


def encode_dp(
    dp_id: int,
    dp_type: Union[DataPointType, int],
    value: DataPointValue,
) -> bytes:
    """
    Encode a datapoint record: [id:1][type:1][len:2 BE][value].

    Args:
        dp_id: Datapoint ID
        dp_type: Datapoint type, or a raw type code
        value: The value to encode

    Returns:
        The encoded record
    """
    raw_value = _encode_value(dp_type, value)
    if len(raw_value) > 0xFFFF:
        raise EncodingError(f"datapoint value too long ({len(raw_value)} bytes)")
    return pack(">BBH", dp_id & 0xFF, _type_code(dp_type), len(raw_value)) + raw_value


def decode_dp_value(
    dp_type: Union[DataPointType, int],
    raw: bytes,
) -> Optional[DataPointValue]:
    """Decode a raw datapoint value, or return None if it is malformed."""
    match _as_type(dp_type):
        case DataPointType.BOOL:
            if len(raw) != 1:
                return None
            return raw[0] != 0
        case DataPointType.VALUE:
            if not 1 <= len(raw) <= 4:
                return None
            return int.from_bytes(raw, "big")
        case DataPointType.STRING:
            try:
                return bytes(raw).decode("utf-8")
            except UnicodeDecodeError:
                return None
        case _:
            return bytes(raw)


def find_dp(
    frame: bytes,
    dp_id: int,
    dp_type: Union[DataPointType, int],
    predicate: Optional[Callable[[DataPointValue], bool]] = None,
) -> Optional[DataPointValue]:
    """
    Search a received frame for a datapoint record.

    Response frames do not keep a fixed layout, so instead of parsing them
    this looks at every offset for the id and type bytes followed by a
    length that fits in the frame. The first candidate whose decoded value
    passes ``predicate`` is returned.

    Returns:
        The decoded value, or None if nothing plausible was found
    """
    type_code = _type_code(dp_type)
    frame = bytes(frame)
    end = len(frame)

    for pos in range(end - DP_HEADER_LENGTH + 1):
        if frame[pos] != dp_id or frame[pos + 1] != type_code:
            continue
        length = int.from_bytes(frame[pos + 2:pos + 4], "big")
        start = pos + DP_HEADER_LENGTH
        if start + length > end:
            continue
        value = decode_dp_value(dp_type, frame[start:start + length])
        if value is None:
            continue
        if predicate is not None and not predicate(value):
            continue
        _LOGGER.debug(
            "Found datapoint id: %s, type: %s at offset %s, value: %s",
            dp_id,
            type_code,
            pos,
            value,
        )
        return value

    return None
