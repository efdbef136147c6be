"""
Modbus RTU CRC Module
CRC-16/MODBUS (reflected polynomial 0xA001, initial value 0xFFFF)
"""

import struct


def _build_table():
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _build_table()


def calculate_crc(data: bytes) -> int:
    """
    Calculate CRC16 for Modbus RTU

    Args:
        data: Bytes to checksum

    Returns:
        int: 16-bit CRC value
    """
    crc = 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ _CRC_TABLE[(crc ^ byte) & 0xFF]
    return crc


def append_crc(data: bytes) -> bytes:
    """Return `data` followed by its CRC, low byte first"""
    return bytes(data) + struct.pack('<H', calculate_crc(data))


def validate_crc(frame: bytes) -> bool:
    """
    Check a frame that still carries its trailing CRC bytes.

    A frame checksummed together with its own CRC leaves a residue of zero.
    """
    if len(frame) < 2:
        return False
    return calculate_crc(frame) == 0
