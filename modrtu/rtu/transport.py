"""
Modbus RTU Transport Module
Serial port access and silence-delimited frame reception
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Union

import serial

from .exceptions import ModbusTimeout
from modrtu.config import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT, INTER_FRAME_DELAY, SILENCE_FACTOR

logger = logging.getLogger(__name__)

# Interval between the two "bytes available" samples used to detect silence
POLL_INTERVAL = INTER_FRAME_DELAY * SILENCE_FACTOR


class Transport(ABC):
    """
    Byte stream the RTU engine talks through.

    The engine never opens or closes a transport; it is handed one that is
    already open and owns it only for the duration of a request.
    """

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Queue bytes for transmission"""

    @abstractmethod
    def bytes_available(self) -> int:
        """Number of received bytes waiting to be read"""

    @abstractmethod
    def read_available(self) -> bytes:
        """Read every received byte that is waiting"""

    @abstractmethod
    def drain(self) -> None:
        """Block until queued bytes have been physically transmitted"""

    @abstractmethod
    def flush(self) -> None:
        """Discard buffered input and output"""

    @abstractmethod
    def set_baud(self, speed_bps: int) -> None:
        """Change line speed"""


class SerialTransport(Transport):
    """Transport backed by a pyserial port"""

    def __init__(self, serial_conn: serial.Serial):
        self.serial_conn = serial_conn

    @property
    def port(self) -> str:
        return self.serial_conn.port

    @property
    def baudrate(self) -> int:
        return self.serial_conn.baudrate

    def is_open(self) -> bool:
        return self.serial_conn.is_open

    def write(self, data: bytes) -> None:
        self.serial_conn.write(data)

    def bytes_available(self) -> int:
        return self.serial_conn.in_waiting

    def read_available(self) -> bytes:
        return self.serial_conn.read(self.serial_conn.in_waiting)

    def drain(self) -> None:
        # pyserial's flush() waits until all output is written
        self.serial_conn.flush()

    def flush(self) -> None:
        self.serial_conn.reset_output_buffer()
        self.serial_conn.reset_input_buffer()
        while self.serial_conn.in_waiting > 0:
            self.serial_conn.read(self.serial_conn.in_waiting)

    def set_baud(self, speed_bps: int) -> None:
        # Bytes framed at the old speed would corrupt the next read
        self.flush()
        self.serial_conn.baudrate = speed_bps
        logger.info(f"Set {self.port} to {speed_bps} baud")

    def close(self) -> None:
        if self.serial_conn.is_open:
            self.serial_conn.close()
            logger.info(f"Disconnected from {self.port}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def open_serial(port: str, baudrate: int = DEFAULT_BAUDRATE, **options) -> SerialTransport:
    """
    Open a serial port for use with modrtu

    The port is opened raw, 8N1, with no flow control or modem lines and a
    non-blocking read timeout. Extra keyword arguments go to serial.Serial.

    Raises:
        serial.SerialException: the port cannot be opened
    """
    settings = dict(
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=0,
        xonxoff=False,
        rtscts=False,
        dsrdtr=False,
    )
    settings.update(options)
    serial_conn = serial.Serial(port=port, baudrate=baudrate, **settings)
    logger.info(f"Connected to {port} at {baudrate} baud")
    return SerialTransport(serial_conn)


def send_frame(transport: Transport, frame: bytes) -> None:
    """Discard stale bytes, write `frame` and wait until it is on the wire"""
    transport.flush()
    logger.debug(f"Sending frame: {frame.hex()}")
    transport.write(frame)
    transport.drain()


def read_frame(transport: Transport,
               timeout: float = DEFAULT_TIMEOUT,
               clock: Callable[[], float] = time.monotonic,
               sleep: Callable[[float], None] = time.sleep,
               poll_interval: float = POLL_INTERVAL) -> Union[bytes, ModbusTimeout]:
    """
    Wait for the next frame.

    RTU frames have no delimiter, so a frame is complete once the receive
    buffer is non-empty and stops growing for one poll interval. The bytes
    are returned unchecked; CRC validation belongs to the frame decoder.

    Returns:
        bytes: the candidate frame, or ModbusTimeout if `timeout` elapses
    """
    deadline = clock() + timeout

    while clock() < deadline:
        before = transport.bytes_available()
        sleep(poll_interval)
        after = transport.bytes_available()

        # No new bytes during the interval: the frame has ended
        if before > 0 and before == after:
            frame = transport.read_available()
            logger.debug(f"Received frame: {frame.hex()}")
            return frame

    return ModbusTimeout(timeout)
