"""
Modbus RTU Client Module
Register, coil and diagnostic operations built on the request engine
"""

import logging
from typing import List, Optional, Sequence

from .base import ModbusRTU
from .exceptions import ModbusTimeout, ModbusConfigError
from .protocol import decode_words, parse_read_registers_response
from modrtu.config import (
    READ_HOLDING_REGISTERS, READ_INPUT_REGISTERS,
    WRITE_SINGLE_COIL, WRITE_SINGLE_REGISTER, DIAGNOSTICS,
    DIAG_RETURN_QUERY_DATA, COIL_ON, COIL_OFF, MAX_READ_REGISTERS,
    PING_PATTERN, PING_TIMEOUT, PING_ATTEMPT_COUNT
)

logger = logging.getLogger(__name__)


class ModbusRTUClient(ModbusRTU):
    """
    Typed Modbus RTU operations; every call is a single request.

    Example:
        with open_serial('/dev/ttyUSB0') as transport:
            client = ModbusRTUClient(transport)
            value = client.read_register(7, 10)
    """

    def read_registers(self, address: int, function_code: int, register: int, count: int) -> List[int]:
        """Read `count` registers starting at `register` with function 3 or 4"""
        if not 1 <= count <= MAX_READ_REGISTERS:
            raise ModbusConfigError(f"Register count must be 1-{MAX_READ_REGISTERS}, got {count}")

        self.device_logger.debug(
            f"Reading {count} registers from {register} with unit ID {address} (function {function_code})"
        )
        body = self.request(address, function_code, [register, count])
        return parse_read_registers_response(body, count, self.byteorder)

    def read_holding_registers(self, address: int, register: int, count: int) -> List[int]:
        """Read holding register values"""
        return self.read_registers(address, READ_HOLDING_REGISTERS, register, count)

    def read_input_registers(self, address: int, register: int, count: int) -> List[int]:
        """Read input register values"""
        return self.read_registers(address, READ_INPUT_REGISTERS, register, count)

    def read_register(self, address: int, register: int) -> int:
        return self.read_holding_registers(address, register, 1)[0]

    def read_input_register(self, address: int, register: int) -> int:
        return self.read_input_registers(address, register, 1)[0]

    def write_register(self, address: int, register: int, value: int) -> None:
        """
        Write single register value

        The device echoes the request; a reply without an exception is
        success.
        """
        self.request(address, WRITE_SINGLE_REGISTER, [register, value])

    def write_coil(self, address: int, coil: int, on: bool) -> None:
        """Write single coil state"""
        self.request(address, WRITE_SINGLE_COIL, [coil, COIL_ON if on else COIL_OFF])

    def echo_query_data(self,
                        address: int,
                        data: Sequence[int],
                        attempt_count: Optional[int] = None,
                        timeout: Optional[float] = None) -> Optional[List[int]]:
        """
        Diagnostics sub-function 0: the server returns the query data.

        Returns:
            The echoed words, or None if the echo has an odd byte length
        """
        body = self.request(
            address, DIAGNOSTICS, [DIAG_RETURN_QUERY_DATA, *data],
            attempt_count=attempt_count, timeout=timeout
        )
        if len(body) % 2:
            self.device_logger.warning(f"Malformed echo from unit {address}: {body.hex()}")
            return None
        return decode_words(body, self.byteorder)[1:]

    def ping(self, address: int, attempt_count: int = PING_ATTEMPT_COUNT) -> bool:
        """
        True if `address` is reachable.

        A timeout means nobody answered and gives False; any other error
        propagates.
        """
        try:
            echo = self.echo_query_data(
                address, PING_PATTERN, attempt_count=attempt_count, timeout=PING_TIMEOUT
            )
        except ModbusTimeout:
            self.device_logger.debug(f"Unit {address} did not answer ping")
            return False
        return echo == list(PING_PATTERN)
