"""Tests for the battery cache."""

import asyncio

import pytest

from py_fingerbot_ble.const import DataPointType
from py_fingerbot_ble.datapoints import encode_dp
from py_fingerbot_ble.exceptions import DeviceNotFoundError
from py_fingerbot_ble.status import BatteryMonitor


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Refresher:
    def __init__(self, level=None, error=None):
        self.calls = 0
        self.level = level
        self.error = error
        self.monitor = None

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        if self.level is not None:
            self.monitor.update(self.level)
        return self.level


def make_monitor(refresher, clock, interval=60.0):
    monitor = BatteryMonitor(refresher, interval, 12, clock)
    refresher.monitor = monitor
    return monitor


@pytest.mark.asyncio
async def test_read_within_interval_uses_cache():
    clock = FakeClock()
    refresher = Refresher(level=80)
    monitor = make_monitor(refresher, clock)
    monitor.update(55)

    clock.now += 30
    assert monitor.read() == 55
    await asyncio.sleep(0.01)
    assert refresher.calls == 0


@pytest.mark.asyncio
async def test_stale_read_triggers_one_refresh():
    clock = FakeClock()
    refresher = Refresher(level=80)
    monitor = make_monitor(refresher, clock)
    monitor.update(55)

    clock.now += 61
    assert monitor.read() == 55
    assert monitor.read() == 55
    assert monitor.refreshing
    await monitor.wait_for_refresh()

    assert refresher.calls == 1
    assert monitor.read() == 80
    assert monitor.last_check == clock.now


@pytest.mark.asyncio
async def test_unknown_level_reads_as_zero_and_refreshes():
    refresher = Refresher(level=None)
    monitor = make_monitor(refresher, FakeClock())

    assert monitor.level == -1
    assert monitor.read() == 0
    await monitor.wait_for_refresh()
    assert refresher.calls == 1


@pytest.mark.asyncio
async def test_failed_refresh_leaves_cache_stale():
    clock = FakeClock()
    refresher = Refresher(error=DeviceNotFoundError("aa:bb", 3))
    monitor = make_monitor(refresher, clock)
    monitor.update(40)
    checked = monitor.last_check

    clock.now += 120
    assert monitor.read() == 40
    await monitor.wait_for_refresh()

    assert monitor.level == 40
    assert monitor.last_check == checked
    assert monitor.is_stale


def test_extract():
    clock = FakeClock()
    monitor = BatteryMonitor(Refresher(), 60.0, 12, clock)

    assert monitor.extract(b"\x55\xaa\x01\x02") is None
    assert monitor.level == -1

    frame = b"\x00" + encode_dp(12, DataPointType.VALUE, 250) + encode_dp(12, DataPointType.VALUE, 91)
    assert monitor.extract(frame) == 91
    assert monitor.level == 91
    assert monitor.last_check == clock.now
