"""Tests for the diagnostic probes."""

import pytest

from py_fingerbot_ble.const import DataPointType, FingerbotCommand, PacketFormat
from py_fingerbot_ble.datapoints import encode_dp
from py_fingerbot_ble.device import FingerbotDevice
from py_fingerbot_ble.diagnostics import DiagnosticProbe, ProbePacket, default_probes
from tests.fakes import FakePeripheral, FakeTransport, make_config


def test_default_probes():
    probes = default_probes()
    assert len(probes) == 12

    first = probes[0].packets[0]
    assert first.command == FingerbotCommand.DP_COMMAND.value
    assert first.payload == encode_dp(1, DataPointType.BOOL, True)
    assert first.packet_format is PacketFormat.SEQ16_BE

    formats = {p.packet_format for probe in probes for p in probe.packets}
    assert formats == set(PacketFormat)


def test_default_probes_follow_switch_dp():
    probes = default_probes(switch_dp_id=3)
    assert probes[0].packets[0].payload == encode_dp(3, DataPointType.BOOL, True)


@pytest.mark.asyncio
async def test_first_working_probe_stops_diagnostics():
    peripheral = FakePeripheral(
        with_notify=True, responder=lambda data: b"\x55\xaa\x00\x01"
    )
    device = FingerbotDevice(make_config(), FakeTransport([peripheral]))

    results = await device.run_diagnostics(
        scan_duration=0.05, timeout=2.0, packet_interval=0.0, probe_interval=0.0
    )

    assert len(results) == 1
    assert results[0].ok
    assert results[0].response_received
    assert results[0].responses == [b"\x55\xaa\x00\x01"]

    packet = peripheral.writes[0]
    # Plaintext, 2-byte sequence layout
    assert packet[4] == FingerbotCommand.DP_COMMAND.value
    assert packet[7:-1] == encode_dp(1, DataPointType.BOOL, True)
    assert not device.is_busy
    assert not peripheral.connected


@pytest.mark.asyncio
async def test_all_probes_fail_without_write_characteristic():
    peripheral = FakePeripheral(with_write=False, with_notify=True)
    device = FingerbotDevice(make_config(), FakeTransport([peripheral]))

    results = await device.run_diagnostics(
        scan_duration=0.05, timeout=0.5, packet_interval=0.0, probe_interval=0.0
    )

    assert len(results) == 12
    assert not any(result.ok for result in results)
    assert all(result.error for result in results)
    assert peripheral.connect_calls == 12
    assert not device.is_busy


@pytest.mark.asyncio
async def test_custom_probe_list():
    peripheral = FakePeripheral()
    device = FingerbotDevice(make_config(), FakeTransport([peripheral]))
    probe = DiagnosticProbe(
        "minimal", (ProbePacket(0x04, b"\x01", PacketFormat.NO_SEQUENCE),)
    )

    results = await device.run_diagnostics(
        [probe], scan_duration=0.05, timeout=2.0, packet_interval=0.0, probe_interval=0.0
    )

    assert [r.ok for r in results] == [True]
    assert not results[0].response_received
    # header, cmd, length, payload, checksum
    assert peripheral.writes == [b"\x55\xaa\x04\x00\x01\x01\x05"]
