"""
Modbus RTU Protocol Module
Handles frame building, response decoding and payload conversion for Modbus RTU
"""

import logging
import struct
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Sequence, Union

from .crc import append_crc, validate_crc
from .exceptions import (
    CRCError, RequestError, InvalidResponseError, ModbusConfigError
)
from modrtu.config import (
    READ_HOLDING_REGISTERS, READ_INPUT_REGISTERS,
    WRITE_SINGLE_COIL, WRITE_SINGLE_REGISTER, DIAGNOSTICS,
    MAX_SERVER_ADDRESS, MAX_PDU_DATA
)

logger = logging.getLogger(__name__)

# Smallest frame that can be checked: address, function code, 2 CRC bytes
MIN_FRAME_LENGTH = 4

FUNCTION_CODES = MappingProxyType({
    'read_holding_registers': READ_HOLDING_REGISTERS,
    'read_input_registers': READ_INPUT_REGISTERS,
    'write_single_coil': WRITE_SINGLE_COIL,
    'write_single_register': WRITE_SINGLE_REGISTER,
    'diagnostics': DIAGNOSTICS,
})

Payload = Union[bytes, bytearray, memoryview, int, Sequence[int]]


@dataclass(frozen=True)
class Request:
    """One request to one server; produces exactly one frame"""
    server_address: int
    function_code: int
    payload: bytes = b''

    def to_frame(self) -> bytes:
        return build_request(self.server_address, self.function_code, self.payload)


@dataclass(frozen=True)
class Response:
    """A CRC-checked response with the CRC bytes removed"""
    address: int
    function_code: int
    body: bytes

    @property
    def exception_flag(self) -> bool:
        return bool(self.function_code & 0x80)

    def __repr__(self) -> str:
        return (
            f"Response(address={self.address}, "
            f"function_code=0x{self.function_code:02X}, "
            f"body={self.body.hex(' ') if self.body else '(empty)'})"
        )


def resolve_function_code(func: Union[int, str],
                          table: Mapping[str, int] = FUNCTION_CODES) -> int:
    """
    Resolve a function code given by number or by name

    Raises:
        ModbusConfigError: unknown name or code outside 1-127
    """
    if isinstance(func, str):
        try:
            return table[func]
        except KeyError:
            raise ModbusConfigError(f"Unknown Modbus function: {func!r}") from None
    if not 1 <= func <= 0x7F:
        raise ModbusConfigError(f"Function code must be 1-127, got {func}")
    return func


def encode_payload(data: Payload, byteorder: str = 'big') -> bytes:
    """
    Normalize a request payload to bytes

    Raw bytes pass through untouched; an int is one 16-bit word and a
    sequence of ints is a run of 16-bit words, packed in `byteorder`.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, int):
        data = [data]
    prefix = '>' if byteorder == 'big' else '<'
    try:
        return struct.pack(f'{prefix}{len(data)}H', *data)
    except struct.error as e:
        raise ModbusConfigError(f"Register values must be 0-65535: {list(data)}") from e


def decode_words(data: bytes, byteorder: str = 'big') -> List[int]:
    """Split `data` into 16-bit words"""
    if len(data) % 2:
        raise InvalidResponseError(f"Odd number of bytes for 16-bit words: {data.hex()}")
    prefix = '>' if byteorder == 'big' else '<'
    return list(struct.unpack(f'{prefix}{len(data) // 2}H', data))


def build_request(unit_id: int, function_code: int, data: bytes = b'') -> bytes:
    """
    Build Modbus RTU request frame

    Args:
        unit_id: Server address (0 for broadcast)
        function_code: Modbus function code
        data: Request data

    Returns:
        bytes: Complete RTU frame with CRC

    Raises:
        ModbusConfigError: address out of range or data longer than one PDU
    """
    if not 0 <= unit_id <= MAX_SERVER_ADDRESS:
        raise ModbusConfigError(f"Server address must be 0-{MAX_SERVER_ADDRESS}, got {unit_id}")
    if not 0 <= function_code <= 0xFF:
        raise ModbusConfigError(f"Function code must fit one byte, got {function_code}")
    if len(data) > MAX_PDU_DATA:
        raise ModbusConfigError(
            f"Payload of {len(data)} bytes exceeds the {MAX_PDU_DATA} byte limit"
        )

    # [unit_id, function_code, data, crc_low, crc_high]
    frame = append_crc(bytes([unit_id, function_code]) + bytes(data))
    logger.debug(f"Built request: {frame.hex()}")
    return frame


def decode_response(frame: bytes) -> Union[Response, CRCError, RequestError, InvalidResponseError]:
    """
    Validate and decode a received frame

    Errors are returned, not raised, so the caller can pick its retry scope.

    Returns:
        Response on success, CRCError for a short or corrupted frame,
        RequestError for an exception response, InvalidResponseError for an
        exception response with no exception code.
    """
    frame = bytes(frame)
    if len(frame) < MIN_FRAME_LENGTH:
        logger.warning(f"Response too short: {frame.hex() or '(empty)'}")
        return CRCError(frame)

    if not validate_crc(frame):
        logger.warning(f"Bad Modbus CRC: {frame.hex()} {frame!r}")
        return CRCError(frame)

    address, function_code = frame[0], frame[1]
    body = frame[2:-2]

    if function_code & 0x80:
        if not body:
            return InvalidResponseError(f"Exception response without code: {frame.hex()}")
        return RequestError(body[0], function_code & 0x7F)

    return Response(address=address, function_code=function_code, body=body)


def parse_read_registers_response(body: bytes, count: int, byteorder: str = 'big') -> List[int]:
    """
    Parse response data for read holding/input registers

    Args:
        body: Response data without address, function code and CRC
        count: Number of registers requested
        byteorder: Register word byte order

    Raises:
        InvalidResponseError: byte count missing or not matching `count`
    """
    if not body:
        raise InvalidResponseError("Empty register response")

    byte_count = body[0]
    register_data = body[1:1 + byte_count]
    if byte_count != count * 2 or len(register_data) != byte_count:
        raise InvalidResponseError(
            f"Expected {count * 2} register bytes, got byte count {byte_count} "
            f"with {len(body) - 1} bytes: {body.hex()}"
        )
    return decode_words(register_data, byteorder)
