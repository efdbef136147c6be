"""
modrtu configuration
Defaults are read from the environment (after .env files are loaded)
"""

import os

# Serial defaults
DEFAULT_PORT = os.environ.get('MODBUS_PORT', '/dev/ttyUSB0')
DEFAULT_BAUDRATE = int(os.environ.get('MODBUS_BAUDRATE', 9600))
DEFAULT_TIMEOUT = float(os.environ.get('MODBUS_TIMEOUT', 0.5))
DEFAULT_ATTEMPT_COUNT = int(os.environ.get('MODBUS_ATTEMPTS', 5))
DEFAULT_BYTEORDER = os.environ.get('MODBUS_BYTEORDER', 'big')

# Modbus function codes
READ_HOLDING_REGISTERS = 0x03
READ_INPUT_REGISTERS = 0x04
WRITE_SINGLE_COIL = 0x05
WRITE_SINGLE_REGISTER = 0x06
DIAGNOSTICS = 0x08

# Diagnostics sub-functions
DIAG_RETURN_QUERY_DATA = 0x0000

# Exception codes
EXCEPTION_ILLEGAL_FUNCTION = 0x01
EXCEPTION_ILLEGAL_ADDRESS = 0x02
EXCEPTION_ILLEGAL_VALUE = 0x03
EXCEPTION_DEVICE_FAILURE = 0x04

# Coil states
COIL_ON = 0xFF00
COIL_OFF = 0x0000

# Frame limits
BROADCAST_ADDRESS = 0
MAX_SERVER_ADDRESS = 247
MAX_PDU_DATA = 252
MAX_READ_REGISTERS = 125

# Timing (seconds)
# 1.75ms silence separates frames above 19200 baud.
INTER_FRAME_DELAY = 0.00175
SILENCE_FACTOR = 10
TIMEOUT_BACKOFF = 0.01
PING_TIMEOUT = 0.1
PING_ATTEMPT_COUNT = 10

# Baud rate detection
AUTO_BAUD_RATES = (38400, 9600)
PING_PATTERN = (1234, 5678)
