"""Tests for the handshake state machine and sequencer."""

import asyncio

import pytest

from py_fingerbot_ble.codec import Session
from py_fingerbot_ble.connection import ConnectionLifecycle
from py_fingerbot_ble.const import DataPointType, FailurePolicy, FingerbotCommand
from py_fingerbot_ble.datapoints import encode_dp
from py_fingerbot_ble.exceptions import (
    OperationTimeoutError,
    UnexpectedDisconnectError,
    WriteError,
)
from py_fingerbot_ble.guard import OperationGuard
from py_fingerbot_ble.sequencer import (
    HandshakeSequencer,
    HandshakeStateMachine,
    OperationKind,
    SequenceEvent,
    Step,
)
from py_fingerbot_ble.status import BatteryMonitor
from tests.fakes import DEVICE_ID, LOCAL_KEY, FakePeripheral, command_of, make_config


class TestHandshakeStateMachine:
    def test_press_order_on_responses(self):
        machine = HandshakeStateMachine(OperationKind.PRESS)
        assert machine.advance(SequenceEvent.START) is Step.LOGIN
        assert machine.advance(SequenceEvent.RESPONSE) is Step.HEARTBEAT
        assert machine.advance(SequenceEvent.STEP_TIMER) is Step.STATUS_QUERY
        assert machine.advance(SequenceEvent.STATUS_EXTRACTED) is Step.PRESS
        assert machine.advance(SequenceEvent.PRESS_ELAPSED) is Step.RELEASE
        assert machine.advance(SequenceEvent.SETTLED) is Step.DONE
        assert machine.history == [
            Step.LOGIN,
            Step.HEARTBEAT,
            Step.STATUS_QUERY,
            Step.PRESS,
            Step.RELEASE,
            Step.DONE,
        ]

    def test_press_ignores_responses(self):
        """Only the press timer ends the PRESS step."""
        machine = HandshakeStateMachine(OperationKind.PRESS)
        machine.advance(SequenceEvent.START)
        for _ in range(3):
            machine.advance(SequenceEvent.STEP_TIMER)
        assert machine.step is Step.PRESS
        assert machine.advance(SequenceEvent.RESPONSE) is Step.PRESS
        assert machine.advance(SequenceEvent.STEP_TIMER) is Step.PRESS
        assert machine.advance(SequenceEvent.PRESS_ELAPSED) is Step.RELEASE
        assert machine.advance(SequenceEvent.RESPONSE) is Step.RELEASE

    def test_battery_query(self):
        machine = HandshakeStateMachine(OperationKind.BATTERY_QUERY)
        assert machine.advance(SequenceEvent.START) is Step.STATUS_QUERY
        assert machine.advance(SequenceEvent.RESPONSE) is Step.STATUS_QUERY
        assert machine.advance(SequenceEvent.STATUS_EXTRACTED) is Step.DONE

        machine = HandshakeStateMachine(OperationKind.BATTERY_QUERY)
        machine.advance(SequenceEvent.START)
        assert machine.advance(SequenceEvent.SETTLED) is Step.DONE

    @pytest.mark.parametrize(
        "event", [SequenceEvent.TIMEOUT, SequenceEvent.DISCONNECT]
    )
    def test_failure_from_any_step(self, event):
        machine = HandshakeStateMachine(OperationKind.PRESS)
        machine.advance(SequenceEvent.START)
        machine.advance(SequenceEvent.RESPONSE)
        assert machine.advance(event) is Step.FAILED
        assert machine.failure is event
        assert machine.finished

    def test_terminal_steps_ignore_events(self):
        machine = HandshakeStateMachine(OperationKind.BATTERY_QUERY)
        machine.advance(SequenceEvent.START)
        machine.advance(SequenceEvent.SETTLED)
        assert machine.advance(SequenceEvent.TIMEOUT) is Step.DONE
        assert machine.failure is None

    def test_idle_needs_start(self):
        machine = HandshakeStateMachine(OperationKind.PRESS)
        assert machine.advance(SequenceEvent.RESPONSE) is Step.IDLE


async def run_sequence(peripheral, kind=OperationKind.PRESS, battery=None, **overrides):
    config = make_config(**overrides)
    session = Session.create(DEVICE_ID, LOCAL_KEY, config.failure_policy)
    async with ConnectionLifecycle(peripheral, OperationGuard("test"), 0.5) as connection:
        sequencer = HandshakeSequencer(connection, session, kind, config, battery)
        await connection.open(sequencer.handle_response, sequencer.handle_disconnect)
        await sequencer.run()
    return sequencer, session


class TestHandshakeSequencer:
    @pytest.mark.asyncio
    async def test_timer_driven_press(self):
        peripheral = FakePeripheral(with_notify=False)
        sequencer, session = await run_sequence(peripheral)

        assert [command_of(p) for p in peripheral.writes] == [
            FingerbotCommand.LOGIN.value,
            FingerbotCommand.HEARTBEAT.value,
            FingerbotCommand.STATUS_QUERY.value,
            FingerbotCommand.DP_COMMAND.value,
            FingerbotCommand.DP_COMMAND.value,
        ]
        assert sequencer.machine.step is Step.DONE
        assert not session.authenticated
        # Login carries the device id in plain text
        assert peripheral.writes[0][9:-1] == DEVICE_ID.encode()

    @pytest.mark.asyncio
    async def test_response_driven_press(self):
        peripheral = FakePeripheral(with_notify=True, responder=lambda data: b"\x55\xaa\x00")
        # Long step timers: only responses can advance in time
        sequencer, session = await run_sequence(
            peripheral, response_timeout=5.0, operation_timeout=1.0
        )
        assert len(peripheral.writes) == 5
        assert session.authenticated

    @pytest.mark.asyncio
    async def test_battery_extracted_from_notification(self):
        frame = b"\x55\xaa\x00\x00\x00\x01\x08" + encode_dp(12, DataPointType.VALUE, 42)
        peripheral = FakePeripheral(
            with_notify=True,
            responder=lambda data: frame if command_of(data) == 0x08 else None,
        )

        async def refresh():
            return None

        battery = BatteryMonitor(refresh, 60.0)
        sequencer, _ = await run_sequence(
            peripheral, OperationKind.BATTERY_QUERY, battery, response_timeout=5.0
        )
        assert len(peripheral.writes) == 1
        assert sequencer.battery_level == 42
        assert battery.level == 42

    @pytest.mark.asyncio
    async def test_write_errors_fail_open(self):
        peripheral = FakePeripheral()
        peripheral.write_char.write_error = RuntimeError("gatt error")
        sequencer, _ = await run_sequence(peripheral)
        assert len(peripheral.writes) == 5
        assert sequencer.machine.step is Step.DONE

    @pytest.mark.asyncio
    async def test_write_errors_fail_fast(self):
        peripheral = FakePeripheral()
        peripheral.write_char.write_error = RuntimeError("gatt error")
        with pytest.raises(WriteError):
            await run_sequence(peripheral, failure_policy=FailurePolicy.FAIL_FAST)
        assert len(peripheral.writes) == 1

    @pytest.mark.asyncio
    async def test_operation_timeout(self):
        peripheral = FakePeripheral()
        with pytest.raises(OperationTimeoutError):
            await run_sequence(peripheral, press_time=5.0, operation_timeout=0.1)
        assert len(peripheral.writes) == 4

    @pytest.mark.asyncio
    async def test_disconnect_mid_sequence(self):
        peripheral = FakePeripheral(with_notify=True)

        def responder(data):
            if command_of(data) == FingerbotCommand.HEARTBEAT.value:
                peripheral.simulate_disconnect()
            return None

        peripheral.responder = responder
        with pytest.raises(UnexpectedDisconnectError):
            await run_sequence(peripheral, response_timeout=0.01)
        assert len(peripheral.writes) == 2

    @pytest.mark.asyncio
    async def test_extra_login_notification_does_not_skip_heartbeat(self):
        loop = asyncio.get_running_loop()
        sent_at = {}

        def responder(data):
            sent_at.setdefault(command_of(data), loop.time())
            if command_of(data) == FingerbotCommand.LOGIN.value:
                # Ack followed by a status frame
                return [b"\x55\xaa\x00", b"\x55\xaa\x01"]
            return None

        peripheral = FakePeripheral(with_notify=True, responder=responder)
        sequencer, session = await run_sequence(
            peripheral, response_timeout=0.2, operation_timeout=2.0
        )

        assert len(peripheral.writes) == 5
        assert session.authenticated
        gap = (
            sent_at[FingerbotCommand.STATUS_QUERY.value]
            - sent_at[FingerbotCommand.HEARTBEAT.value]
        )
        assert gap >= 0.2 * 0.9
