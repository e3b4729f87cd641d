"""Unit tests for packet framing and sessions."""

import pytest

from py_fingerbot_ble import codec
from py_fingerbot_ble.codec import (
    Session,
    checksum,
    encode_packet,
    frame_packet,
    verify_checksum,
)
from py_fingerbot_ble.const import FailurePolicy, FingerbotCommand, PacketFormat
from py_fingerbot_ble.crypto import decrypt_payload, derive_session_key
from py_fingerbot_ble.exceptions import EncodingError, EncryptionError

DEVICE_ID = "bf1234567890abcdef"
KEY = derive_session_key("0123456789abcdef0123456789abcdef")


class TestChecksum:
    def test_sum_mod_256(self):
        assert checksum(b"") == 0
        assert checksum(bytes([0x55, 0xAA])) == (0x55 + 0xAA) & 0xFF
        assert checksum(bytes([0xFF] * 10)) == (0xFF * 10) % 256

    def test_verify(self):
        packet = frame_packet(1, FingerbotCommand.LOGIN, b"abc")
        assert verify_checksum(packet)
        corrupted = packet[:-2] + bytes([packet[-2] ^ 0x01]) + packet[-1:]
        assert not verify_checksum(corrupted)
        assert not verify_checksum(b"\x00")


class TestFramePacket:
    def test_standard_layout(self):
        packet = frame_packet(0x01020304, FingerbotCommand.DP_COMMAND, b"\x10\x20")
        assert packet[:2] == b"\x55\xaa"
        assert packet[2:6] == b"\x01\x02\x03\x04"
        assert packet[6] == 0x06
        assert packet[7:9] == b"\x00\x02"
        assert packet[9:11] == b"\x10\x20"
        assert packet[11] == sum(packet[:11]) % 256
        assert len(packet) == 12

    @pytest.mark.parametrize("payload", [b"", b"\x00", bytes(range(256)) * 3])
    def test_checksum_covers_all_preceding_bytes(self, payload):
        packet = frame_packet(0xFFFFFFFF, FingerbotCommand.STATUS_QUERY, payload)
        assert packet[-1] == sum(packet[:-1]) % 256
        assert int.from_bytes(packet[7:9], "big") == len(payload)

    def test_seq16_be(self):
        packet = frame_packet(0x12345, 0x06, b"\x01", PacketFormat.SEQ16_BE)
        assert packet[2:4] == b"\x23\x45"
        assert packet[4] == 0x06
        assert packet[5:7] == b"\x00\x01"

    def test_seq16_le(self):
        packet = frame_packet(0x0102, 0x06, b"\x01\x02\x03", PacketFormat.SEQ16_LE)
        assert packet[2:4] == b"\x02\x01"
        assert packet[5:7] == b"\x03\x00"
        assert verify_checksum(packet)

    def test_no_sequence(self):
        packet = frame_packet(99, 0x06, b"\x01", PacketFormat.NO_SEQUENCE)
        assert packet == bytes([0x55, 0xAA, 0x06, 0x00, 0x01, 0x01, (0x55 + 0xAA + 6 + 1 + 1) % 256])

    def test_payload_too_long(self):
        with pytest.raises(EncodingError):
            frame_packet(1, FingerbotCommand.DP_COMMAND, bytes(0x10000))


class TestSession:
    def test_random_start(self):
        sequences = {Session(DEVICE_ID, KEY).sequence for _ in range(8)}
        assert len(sequences) > 1

    def test_increment_before_use_and_wrap(self):
        session = Session(DEVICE_ID, KEY, sequence=0xFFFFFFFE)
        assert session.next_sequence() == 0xFFFFFFFF
        assert session.next_sequence() == 0
        assert session.next_sequence() == 1

    def test_create_derives_key(self):
        session = Session.create(DEVICE_ID, "0123456789abcdef0123456789abcdef")
        assert session.session_key == KEY
        assert not session.authenticated

    def test_create_without_key(self):
        assert Session.create(DEVICE_ID, None).session_key is None


class TestEncodePacket:
    def setup_method(self):
        self.session = Session(DEVICE_ID, KEY, sequence=10)

    def test_login_is_plaintext(self):
        packet = encode_packet(self.session, FingerbotCommand.LOGIN, DEVICE_ID.encode())
        assert int.from_bytes(packet[2:6], "big") == 11
        assert packet[6] == FingerbotCommand.LOGIN.value
        assert packet[9:-1] == DEVICE_ID.encode()

    def test_other_commands_are_encrypted(self):
        packet = encode_packet(self.session, FingerbotCommand.HEARTBEAT, b"\x00\x00\x00\x01")
        length = int.from_bytes(packet[7:9], "big")
        payload = packet[9:-1]
        assert length == len(payload)
        assert length % 16 == 0
        assert decrypt_payload(KEY, payload) == DEVICE_ID.encode() + b"\x00\x00\x00\x01"
        assert verify_checksum(packet)

    def test_sequence_advances_per_packet(self):
        first = encode_packet(self.session, FingerbotCommand.LOGIN, b"")
        second = encode_packet(self.session, FingerbotCommand.STATUS_QUERY)
        assert int.from_bytes(second[2:6], "big") == int.from_bytes(first[2:6], "big") + 1

    def test_missing_key_for_encrypted_command(self):
        session = Session(DEVICE_ID, None)
        with pytest.raises(EncodingError):
            encode_packet(session, FingerbotCommand.STATUS_QUERY)
        # Login does not need the key
        encode_packet(session, FingerbotCommand.LOGIN, b"id")

    def test_encryption_failure_falls_back_to_plaintext(self, monkeypatch):
        def broken(*args):
            raise EncryptionError("boom")

        monkeypatch.setattr(codec, "encrypt_payload", broken)
        packet = encode_packet(self.session, FingerbotCommand.HEARTBEAT, b"\x01\x02")
        assert packet[9:-1] == b"\x01\x02"

    def test_encryption_failure_fail_fast(self, monkeypatch):
        def broken(*args):
            raise EncryptionError("boom")

        monkeypatch.setattr(codec, "encrypt_payload", broken)
        session = Session(DEVICE_ID, KEY, FailurePolicy.FAIL_FAST)
        with pytest.raises(EncryptionError):
            encode_packet(session, FingerbotCommand.HEARTBEAT, b"\x01\x02")

    def test_explicit_plaintext(self):
        packet = encode_packet(
            self.session, 0x04, b"\x01", encrypt=False, packet_format=PacketFormat.SEQ16_BE
        )
        assert packet[4] == 0x04
        assert packet[7:-1] == b"\x01"
