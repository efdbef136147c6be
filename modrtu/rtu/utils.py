"""
Modbus RTU Utility Functions
Baud rate detection and serial port discovery
"""

import glob
import logging
from typing import List, Optional, Sequence

import serial.tools.list_ports

from .client import ModbusRTUClient
from modrtu.config import AUTO_BAUD_RATES

logger = logging.getLogger(__name__)


def find_serial_ports() -> List[str]:
    """
    Find available serial ports on the system

    Returns:
        List[str]: List of available serial port paths
    """
    available_ports = [port.device for port in serial.tools.list_ports.comports()]

    # Fallback to common USB serial device paths
    if not available_ports:
        available_ports = sorted(glob.glob('/dev/ttyUSB*')) + sorted(glob.glob('/dev/ttyACM*'))

    logger.info(f"Found {len(available_ports)} serial ports: {available_ports}")
    return available_ports


def try_baud(client: ModbusRTUClient, address: int, speed_bps: int) -> bool:
    """
    Attempt to contact `address` using `speed_bps`.

    The transport flushes before the speed change so bytes framed at the
    old rate cannot corrupt the probe.
    """
    logger.debug(f"Trying unit {address} at {speed_bps} baud")
    client.transport.set_baud(speed_bps)
    return client.ping(address)


def detect_baudrate(client: ModbusRTUClient,
                    address: int,
                    rates: Sequence[int] = AUTO_BAUD_RATES) -> Optional[int]:
    """Return the first rate in `rates` at which `address` answers a ping"""
    for speed_bps in rates:
        if try_baud(client, address, speed_bps):
            logger.info(f"Unit {address} answers at {speed_bps} baud")
            return speed_bps
    logger.warning(f"Unit {address} did not answer at any of {list(rates)} baud")
    return None


def auto_baud(client: ModbusRTUClient, address: int) -> bool:
    """
    Attempt to detect the baud rate used by `address` (38400 or 9600 bps).

    The transport is left at the detected rate. Returns True on success.
    """
    return detect_baudrate(client, address) is not None
