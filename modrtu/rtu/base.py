"""
Base Modbus RTU Communication Module
Request engine: framing, exchange and the two-level retry policy
"""

import logging
import time
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Union

from .exceptions import (
    ModbusError, CRCError, ModbusTimeout, RequestError,
    ExceptionCode, ModbusConfigError
)
from .protocol import (
    FUNCTION_CODES, Payload, Response,
    build_request, decode_response, encode_payload, resolve_function_code
)
from .transport import Transport, POLL_INTERVAL, send_frame, read_frame
from modrtu.config import (
    DEFAULT_ATTEMPT_COUNT, DEFAULT_TIMEOUT, DEFAULT_BYTEORDER,
    TIMEOUT_BACKOFF, BROADCAST_ADDRESS
)

logger = logging.getLogger(__name__)


class ModbusRTU:
    """
    Modbus RTU request engine bound to one open transport.

    Only one request may be in flight on a transport; callers sharing a
    transport between threads must serialize access themselves.

    Args:
        transport: An already-open Transport
        attempt_count: Default attempts for both retry scopes
        timeout: Default response timeout in seconds
        byteorder: 'big' (Modbus convention) or 'little' for register words
        function_codes: Name to function code table used by request()
        clock: Monotonic time source
        sleep: Sleep function
        poll_interval: Silence interval that ends a frame
        device_logger: Logger for device-specific logs (default: module logger)
    """

    def __init__(self,
                 transport: Transport,
                 attempt_count: int = DEFAULT_ATTEMPT_COUNT,
                 timeout: float = DEFAULT_TIMEOUT,
                 byteorder: str = DEFAULT_BYTEORDER,
                 function_codes: Mapping[str, int] = FUNCTION_CODES,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 poll_interval: float = POLL_INTERVAL,
                 device_logger: logging.Logger = None):
        if byteorder not in ('big', 'little'):
            raise ModbusConfigError(f"byteorder must be 'big' or 'little', got {byteorder!r}")
        if attempt_count < 1:
            raise ModbusConfigError(f"attempt_count must be at least 1, got {attempt_count}")

        self.transport = transport
        self.attempt_count = attempt_count
        self.timeout = timeout
        self.byteorder = byteorder
        self.function_codes = MappingProxyType(dict(function_codes))
        self.clock = clock
        self.sleep = sleep
        self.poll_interval = poll_interval
        self.device_logger = device_logger if device_logger is not None else logger

    def request(self,
                server: int,
                func: Union[int, str],
                data: Payload = b'',
                attempt_count: Optional[int] = None,
                timeout: Optional[float] = None) -> bytes:
        """
        Send `func` request to `server` and return the response body.

        e.g. Send function 8 (Diagnostics) to server address 7:
        `rtu.request(7, 8, [0, 1, 2, 3])`

        Returns:
            bytes: Response data after the address and function code

        Raises:
            ModbusError: CRCError, ModbusTimeout or RequestError once the
                retry policy gives up
            ModbusConfigError: unknown function name or unencodable payload
        """
        result = self.exchange(server, func, data, attempt_count, timeout)
        if isinstance(result, ModbusError):
            raise result
        return result

    def exchange(self,
                 server: int,
                 func: Union[int, str],
                 data: Payload = b'',
                 attempt_count: Optional[int] = None,
                 timeout: Optional[float] = None) -> Union[bytes, ModbusError]:
        """
        Run one logical request and return the body or the final error.

        Outer scope: a timeout backs off and repeats the inner scope; a
        ServerDeviceFailure exception response repeats it immediately; any
        other exception response ends the request.
        Inner scope: a CRC failure resends at once.
        Both scopes are bounded by `attempt_count`.
        """
        attempt_count = self.attempt_count if attempt_count is None else attempt_count
        timeout = self.timeout if timeout is None else timeout
        if attempt_count < 1:
            raise ModbusConfigError(f"attempt_count must be at least 1, got {attempt_count}")

        function_code = resolve_function_code(func, self.function_codes)
        frame = build_request(server, function_code, encode_payload(data, self.byteorder))

        if server == BROADCAST_ADDRESS:
            # Servers never answer a broadcast
            send_frame(self.transport, frame)
            return b''

        error = None
        for attempt in range(1, attempt_count + 1):
            result = self._attempt(frame, attempt_count, timeout)
            if isinstance(result, bytes):
                return result

            error = result
            if isinstance(error, RequestError):
                self.device_logger.warning(f"{error} for request {frame.hex()}")
                if error.exception_code != ExceptionCode.SERVER_DEVICE_FAILURE:
                    return error
            elif isinstance(error, ModbusTimeout):
                self.device_logger.debug(
                    f"No response from server {server} (attempt {attempt}/{attempt_count})"
                )
                if attempt < attempt_count:
                    self.sleep(TIMEOUT_BACKOFF)
            else:
                return error

        self.device_logger.info(f"Giving up on request {frame.hex()} after {attempt_count} attempts: {error}")
        return error

    def _attempt(self, frame: bytes, attempt_count: int, timeout: float) -> Union[bytes, ModbusError]:
        """Send `frame` until a CRC-valid reply arrives or attempts run out"""
        error = None
        for attempt in range(1, attempt_count + 1):
            send_frame(self.transport, frame)
            received = read_frame(
                self.transport, timeout,
                clock=self.clock, sleep=self.sleep, poll_interval=self.poll_interval
            )
            if isinstance(received, ModbusTimeout):
                return received

            response = decode_response(received)
            if isinstance(response, CRCError):
                # Line noise: resend straight away
                self.device_logger.debug(f"CRC error (attempt {attempt}/{attempt_count})")
                error = response
                continue
            if isinstance(response, Response):
                self._check_echo(frame, response)
                return response.body
            return response

        return error

    def _check_echo(self, frame: bytes, response: Response) -> None:
        # Some devices answer with a different address; accept the body anyway
        if response.address != frame[0]:
            self.device_logger.warning(f"Unit ID mismatch: expected {frame[0]}, got {response.address}")
        if response.function_code != frame[1]:
            self.device_logger.warning(
                f"Function code mismatch: expected {frame[1]}, got {response.function_code}"
            )
