"""Ordered login / command handshake run over an open connection."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from struct import pack
from typing import List, Optional, Tuple

from .codec import Session, encode_packet
from .connection import ConnectionLifecycle
from .const import DataPointType, FailurePolicy, FingerbotCommand
from .datapoints import encode_dp
from .exceptions import (
    FingerbotError,
    OperationTimeoutError,
    UnexpectedDisconnectError,
    WriteError,
)
from .manager import FingerbotConfig
from .status import BatteryMonitor

_LOGGER = logging.getLogger(__name__)


class OperationKind(Enum):
    """Operations the engine can run against a device."""

    PRESS = "press"
    BATTERY_QUERY = "battery_query"


class Step(Enum):
    """Handshake steps."""

    IDLE = "idle"
    LOGIN = "login"
    HEARTBEAT = "heartbeat"
    STATUS_QUERY = "status_query"
    PRESS = "press"
    RELEASE = "release"
    DONE = "done"
    FAILED = "failed"


class SequenceEvent(Enum):
    """Inputs of the handshake state machine."""

    START = "start"
    RESPONSE = "response"                   # a notification arrived
    STATUS_EXTRACTED = "status_extracted"   # a notification carried the battery DP
    STEP_TIMER = "step_timer"               # no response in time; advance anyway
    PRESS_ELAPSED = "press_elapsed"
    SETTLED = "settled"
    TIMEOUT = "timeout"                     # overall operation deadline
    DISCONNECT = "disconnect"


_PRESS_SEQUENCE = [
    Step.LOGIN,
    Step.HEARTBEAT,
    Step.STATUS_QUERY,
    Step.PRESS,
    Step.RELEASE,
]

_RESPONSE_EVENTS = (
    SequenceEvent.RESPONSE,
    SequenceEvent.STATUS_EXTRACTED,
    SequenceEvent.STEP_TIMER,
)


class HandshakeStateMachine:
    """
    Step ordering of an operation, independent of any transport.

    Press:          LOGIN -> HEARTBEAT -> STATUS_QUERY -> PRESS -> RELEASE -> DONE
    Battery query:  STATUS_QUERY -> DONE

    The first three press steps advance on a response or a step timer,
    PRESS advances when the press time has elapsed and RELEASE when the
    settle delay has passed. TIMEOUT and DISCONNECT fail any unfinished
    operation. Events with no transition from the current step are ignored.
    """

    def __init__(self, kind: OperationKind) -> None:
        self.kind = kind
        self.step = Step.IDLE
        self.failure: Optional[SequenceEvent] = None
        self.history: List[Step] = []

    @property
    def finished(self) -> bool:
        """Check if the machine reached DONE or FAILED."""
        return self.step in (Step.DONE, Step.FAILED)

    def advance(self, event: SequenceEvent) -> Step:
        """Apply an event and return the resulting step."""
        if self.finished:
            return self.step

        if event in (SequenceEvent.TIMEOUT, SequenceEvent.DISCONNECT):
            self.failure = event
            next_step: Optional[Step] = Step.FAILED
        else:
            next_step = self._transition(event)

        if next_step is not None:
            _LOGGER.debug(
                "%s: %s -> %s on %s",
                self.kind.name,
                self.step.name,
                next_step.name,
                event.name,
            )
            self.step = next_step
            self.history.append(next_step)
        return self.step

    def _transition(self, event: SequenceEvent) -> Optional[Step]:
        step = self.step

        if step is Step.IDLE:
            if event is not SequenceEvent.START:
                return None
            if self.kind is OperationKind.BATTERY_QUERY:
                return Step.STATUS_QUERY
            return _PRESS_SEQUENCE[0]

        if self.kind is OperationKind.BATTERY_QUERY:
            if step is Step.STATUS_QUERY and event in (
                SequenceEvent.STATUS_EXTRACTED,
                SequenceEvent.SETTLED,
            ):
                return Step.DONE
            return None

        if step in (Step.LOGIN, Step.HEARTBEAT, Step.STATUS_QUERY):
            if event in _RESPONSE_EVENTS:
                return _PRESS_SEQUENCE[_PRESS_SEQUENCE.index(step) + 1]
        elif step is Step.PRESS:
            if event is SequenceEvent.PRESS_ELAPSED:
                return Step.RELEASE
        elif step is Step.RELEASE:
            if event is SequenceEvent.SETTLED:
                return Step.DONE
        return None


# Queue items carry the step a timer was armed for or a notification arrived
# in; events tagged with another step than the one awaited are dropped.
# Disconnects are untagged.
_QueuedEvent = Tuple[SequenceEvent, Optional[Step]]


class HandshakeSequencer:
    """
    Run the handshake of one operation over an open connection.

    Notifications (handle_response) and software timers feed one event
    queue; every event goes through HandshakeStateMachine.advance. The
    whole run is bounded by the configured operation timeout.
    """

    def __init__(
        self,
        connection: ConnectionLifecycle,
        session: Session,
        kind: OperationKind,
        config: FingerbotConfig,
        battery: Optional[BatteryMonitor] = None,
    ) -> None:
        self._connection = connection
        self._session = session
        self._config = config
        self._battery = battery
        self._machine = HandshakeStateMachine(kind)
        self._events: asyncio.Queue[_QueuedEvent] = asyncio.Queue()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._deadline = 0.0
        self._battery_level: Optional[int] = None

    @property
    def machine(self) -> HandshakeStateMachine:
        """Get the underlying state machine."""
        return self._machine

    @property
    def battery_level(self) -> Optional[int]:
        """Get the battery level extracted during this run, if any."""
        return self._battery_level

    @property
    def address(self) -> str:
        """Get the device address."""
        return self._connection.address

    def handle_response(self, data: bytes) -> None:
        """Notification callback for the connection."""
        _LOGGER.debug("%s: Response received: %s", self.address, data.hex())
        value = self._battery.extract(data) if self._battery else None
        step = self._machine.step
        if value is not None:
            self._battery_level = value
            self._events.put_nowait((SequenceEvent.STATUS_EXTRACTED, step))
        else:
            self._events.put_nowait((SequenceEvent.RESPONSE, step))

    def handle_disconnect(self) -> None:
        """Disconnect callback for the connection."""
        self._events.put_nowait((SequenceEvent.DISCONNECT, None))

    async def run(self) -> None:
        """
        Execute the handshake to completion.

        Raises:
            OperationTimeoutError: If the operation deadline passes
            UnexpectedDisconnectError: If the device disconnects mid-sequence
            WriteError: On a write failure under the fail-fast policy
        """
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self._config.operation_timeout

        step = self._machine.advance(SequenceEvent.START)
        try:
            while not self._machine.finished:
                await self._enter(step)
                if self._machine.finished:
                    break
                step = await self._wait_for_transition(step)
        finally:
            self._cancel_timer()

        if self._machine.step is Step.FAILED:
            raise self._failure_error()
        _LOGGER.debug("%s: %s sequence complete", self.address, self._machine.kind.name)

    def _failure_error(self) -> FingerbotError:
        if self._machine.failure is SequenceEvent.DISCONNECT:
            return UnexpectedDisconnectError()
        return OperationTimeoutError(self._config.operation_timeout)

    def _remaining(self) -> float:
        return max(self._deadline - asyncio.get_running_loop().time(), 0.0)

    def _build_packet(self, step: Step) -> bytes:
        session = self._session
        packet_format = self._config.packet_format
        match step:
            case Step.LOGIN:
                return encode_packet(
                    session,
                    FingerbotCommand.LOGIN,
                    session.device_id.encode("utf-8"),
                    packet_format=packet_format,
                )
            case Step.HEARTBEAT:
                timestamp = int(time.time()) & 0xFFFFFFFF
                return encode_packet(
                    session,
                    FingerbotCommand.HEARTBEAT,
                    pack(">I", timestamp),
                    packet_format=packet_format,
                )
            case Step.STATUS_QUERY:
                return encode_packet(
                    session,
                    FingerbotCommand.STATUS_QUERY,
                    packet_format=packet_format,
                )
            case Step.PRESS | Step.RELEASE:
                dp = encode_dp(
                    self._config.switch_dp_id,
                    DataPointType.BOOL,
                    step is Step.PRESS,
                )
                return encode_packet(
                    session,
                    FingerbotCommand.DP_COMMAND,
                    dp,
                    packet_format=packet_format,
                )
        raise ValueError(f"No packet for step {step}")

    async def _enter(self, step: Step) -> None:
        """Send the packet of a step, then arm the timer that ends it."""
        packet = self._build_packet(step)
        _LOGGER.debug(
            "%s: Sending packet: #%s %s: %s",
            self.address,
            self._session.sequence,
            step.name,
            packet.hex(),
        )

        try:
            await asyncio.wait_for(self._connection.write(packet), self._remaining())
        except asyncio.TimeoutError:
            self._machine.advance(SequenceEvent.TIMEOUT)
            return
        except WriteError as e:
            if self._config.failure_policy is FailurePolicy.FAIL_FAST:
                _LOGGER.error("%s: Write failed at %s: %s", self.address, step.name, e)
                raise
            _LOGGER.warning(
                "%s: Write failed at %s, continuing: %s", self.address, step.name, e
            )

        self._arm_timer(step)

    def _arm_timer(self, step: Step) -> None:
        config = self._config
        notifying = self._connection.notifying
        wait = config.response_timeout if notifying else config.step_delay

        match step:
            case Step.PRESS:
                event, delay = SequenceEvent.PRESS_ELAPSED, config.press_time
            case Step.RELEASE:
                event, delay = SequenceEvent.SETTLED, config.settle_delay
            case Step.STATUS_QUERY if self._machine.kind is OperationKind.BATTERY_QUERY:
                event = SequenceEvent.SETTLED
                delay = config.response_timeout if notifying else 0.0
            case _:
                event, delay = SequenceEvent.STEP_TIMER, wait

        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(
            delay, self._events.put_nowait, (event, step)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _wait_for_transition(self, step: Step) -> Step:
        while True:
            try:
                event, tag = await asyncio.wait_for(
                    self._events.get(), self._remaining()
                )
            except asyncio.TimeoutError:
                event, tag = SequenceEvent.TIMEOUT, None

            if tag is not None and tag is not step:
                continue

            new_step = self._machine.advance(event)
            if new_step is step:
                continue

            self._cancel_timer()
            if step is Step.LOGIN and event in (
                SequenceEvent.RESPONSE,
                SequenceEvent.STATUS_EXTRACTED,
            ):
                self._session.authenticated = True
            return new_step
