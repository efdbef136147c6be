"""
Deterministic transport for running the RTU engine without hardware.

MockTransport delivers scripted replies as timed byte chunks against a
FakeClock, so silence detection and timeouts behave exactly the same on
every run and no real time passes.

    clock = FakeClock()
    transport = MockTransport(clock, responses=[reply_frame])
    rtu = ModbusRTU(transport, clock=clock, sleep=clock.sleep)
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .transport import Transport

logger = logging.getLogger(__name__)

# What a device does with one request: stay silent, send one burst, or send
# several bursts separated by `chunk_gap`.
Reply = Union[None, bytes, Sequence[bytes]]


class FakeClock:
    """Clock that only moves when something sleeps on it"""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockTransport(Transport):
    """
    In-memory transport with simulated byte arrival times.

    Args:
        clock: FakeClock shared with the engine
        responses: replies handed out in order, one per written frame
        responder: callable building a reply from the written frame;
            used once `responses` is exhausted
        latency: delay between end of request and first reply byte
        chunk_gap: delay between successive chunks of one reply
        baudrate: current line speed
        device_baudrate: speed the simulated device listens at; requests sent
            at any other speed go unanswered
    """

    def __init__(self,
                 clock: FakeClock,
                 responses: Sequence[Reply] = (),
                 responder: Optional[Callable[[bytes], Reply]] = None,
                 latency: float = 0.005,
                 chunk_gap: float = 0.001,
                 baudrate: int = 9600,
                 device_baudrate: Optional[int] = None):
        self.clock = clock
        self.responses = list(responses)
        self.responder = responder
        self.latency = latency
        self.chunk_gap = chunk_gap
        self.baudrate = baudrate
        self.device_baudrate = device_baudrate

        self.written: List[bytes] = []
        self.flush_count = 0
        self.drain_count = 0
        self.baud_changes: List[int] = []
        self.closed = False
        self._pending: List[Tuple[float, bytes]] = []

    def _check_open(self) -> None:
        if self.closed:
            raise ConnectionError("Transport is closed")

    def _arrived(self) -> List[Tuple[float, bytes]]:
        return [item for item in self._pending if item[0] <= self.clock.now]

    def _next_reply(self, frame: bytes) -> Reply:
        if self.responses:
            return self.responses.pop(0)
        if self.responder is not None:
            return self.responder(frame)
        return None

    def _schedule(self, reply: Reply) -> None:
        if reply is None:
            return
        if self.device_baudrate is not None and self.device_baudrate != self.baudrate:
            logger.debug(f"Device at {self.device_baudrate} baud ignores request at {self.baudrate}")
            return
        chunks = [reply] if isinstance(reply, (bytes, bytearray)) else list(reply)
        at = self.clock.now + self.latency
        for chunk in chunks:
            self._pending.append((at, bytes(chunk)))
            at += self.chunk_gap

    def inject(self, data: bytes, delay: float = 0.0) -> None:
        """Put unsolicited bytes on the line"""
        self._pending.append((self.clock.now + delay, bytes(data)))

    def write(self, data: bytes) -> None:
        self._check_open()
        data = bytes(data)
        self.written.append(data)
        self._schedule(self._next_reply(data))

    def bytes_available(self) -> int:
        self._check_open()
        return sum(len(chunk) for _, chunk in self._arrived())

    def read_available(self) -> bytes:
        self._check_open()
        arrived = self._arrived()
        self._pending = [item for item in self._pending if item not in arrived]
        return b''.join(chunk for _, chunk in arrived)

    def drain(self) -> None:
        self._check_open()
        self.drain_count += 1

    def flush(self) -> None:
        self._check_open()
        self.flush_count += 1
        arrived = self._arrived()
        if arrived:
            logger.debug(f"Discarding {sum(len(c) for _, c in arrived)} stale bytes")
        self._pending = [item for item in self._pending if item not in arrived]

    def set_baud(self, speed_bps: int) -> None:
        self.flush()
        self.baudrate = speed_bps
        self.baud_changes.append(speed_bps)

    def close(self) -> None:
        self.closed = True
