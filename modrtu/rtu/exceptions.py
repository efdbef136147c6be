"""
Modbus RTU error types
"""

from enum import IntEnum
from typing import Union

from modrtu.config import (
    EXCEPTION_ILLEGAL_FUNCTION, EXCEPTION_ILLEGAL_ADDRESS,
    EXCEPTION_ILLEGAL_VALUE, EXCEPTION_DEVICE_FAILURE
)


class ExceptionCode(IntEnum):
    """Exception codes a server may return in an exception response"""
    ILLEGAL_FUNCTION = EXCEPTION_ILLEGAL_FUNCTION
    ILLEGAL_DATA_ADDRESS = EXCEPTION_ILLEGAL_ADDRESS
    ILLEGAL_DATA_VALUE = EXCEPTION_ILLEGAL_VALUE
    SERVER_DEVICE_FAILURE = EXCEPTION_DEVICE_FAILURE


EXCEPTION_DESCRIPTIONS = {
    ExceptionCode.ILLEGAL_FUNCTION: "Illegal function code",
    ExceptionCode.ILLEGAL_DATA_ADDRESS: "Illegal data address",
    ExceptionCode.ILLEGAL_DATA_VALUE: "Illegal data value",
    ExceptionCode.SERVER_DEVICE_FAILURE: "Server device failure",
}


def to_exception_code(code: int) -> Union[ExceptionCode, int]:
    """Map a raw code to ExceptionCode, passing unknown codes through"""
    try:
        return ExceptionCode(code)
    except ValueError:
        return code


class ModbusError(Exception):
    """Base class for Modbus protocol failures"""


class CRCError(ModbusError):
    """Received frame failed the CRC check (or was too short to carry one)"""

    def __init__(self, frame: bytes = b''):
        self.frame = bytes(frame)
        super().__init__(f"Bad Modbus CRC in frame {self.frame.hex() or '(empty)'}")


class ModbusTimeout(ModbusError):
    """No frame arrived before the deadline"""

    def __init__(self, timeout: float = None):
        self.timeout = timeout
        if timeout is None:
            super().__init__("No response")
        else:
            super().__init__(f"No response within {timeout:.3f}s")


class RequestError(ModbusError):
    """Server answered with an exception response"""

    def __init__(self, code: int, function_code: int = None):
        self.exception_code = to_exception_code(code)
        self.function_code = function_code
        description = EXCEPTION_DESCRIPTIONS.get(
            self.exception_code, f"Unknown exception code: {code}"
        )
        super().__init__(f"{description} (code: {int(code)})")

    @property
    def code(self) -> int:
        return int(self.exception_code)


class InvalidResponseError(ModbusError):
    """Response passed the CRC check but its body does not fit the request"""


class ModbusConfigError(ValueError):
    """Caller supplied something no frame can be built from"""
