"""
Modbus RTU Package
Client-side Modbus RTU over an asynchronous serial line
"""

# Core classes
from .base import ModbusRTU
from .client import ModbusRTUClient

# Errors
from .exceptions import (
    ModbusError, CRCError, ModbusTimeout, RequestError, InvalidResponseError,
    ModbusConfigError, ExceptionCode
)

# Protocol functions
from .protocol import (
    FUNCTION_CODES, Request, Response,
    build_request, decode_response, encode_payload, decode_words,
    parse_read_registers_response, resolve_function_code
)

# CRC functions
from .crc import calculate_crc, append_crc, validate_crc

# Transport
from .transport import Transport, SerialTransport, open_serial, send_frame, read_frame
from .mock import MockTransport, FakeClock

# Utility functions
from .utils import find_serial_ports, try_baud, detect_baudrate, auto_baud

__all__ = [
    'ModbusRTU',
    'ModbusRTUClient',
    'ModbusError',
    'CRCError',
    'ModbusTimeout',
    'RequestError',
    'InvalidResponseError',
    'ModbusConfigError',
    'ExceptionCode',
    'FUNCTION_CODES',
    'Request',
    'Response',
    'build_request',
    'decode_response',
    'encode_payload',
    'decode_words',
    'parse_read_registers_response',
    'resolve_function_code',
    'calculate_crc',
    'append_crc',
    'validate_crc',
    'Transport',
    'SerialTransport',
    'open_serial',
    'send_frame',
    'read_frame',
    'MockTransport',
    'FakeClock',
    'find_serial_ports',
    'try_baud',
    'detect_baudrate',
    'auto_baud',
]
