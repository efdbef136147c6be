"""
modrtu - Modbus RTU client for serial lines
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

__version__ = '0.2.0'

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format=os.environ.get(
        'LOG_FORMAT',
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
)
logger = logging.getLogger(__name__)


def load_env_files():
    """Load environment variables from .env files in project directories."""
    # Try to load from current directory
    if load_dotenv(dotenv_path='.env'):
        logger.debug('Loaded .env from current directory')

    # Try to load from the project root
    root_env = Path(__file__).parent.parent / '.env'
    if root_env.exists() and load_dotenv(dotenv_path=root_env):
        logger.debug(f'Loaded .env from {root_env}')


# Load environment variables before modrtu.config reads them
load_env_files()

# Import components after environment is configured
from modrtu.rtu import (  # noqa: E402
    ModbusRTU, ModbusRTUClient, ModbusError, CRCError, ModbusTimeout,
    RequestError, ModbusConfigError, ExceptionCode, open_serial, auto_baud
)

__all__ = [
    'ModbusRTU',
    'ModbusRTUClient',
    'ModbusError',
    'CRCError',
    'ModbusTimeout',
    'RequestError',
    'ModbusConfigError',
    'ExceptionCode',
    'open_serial',
    'auto_baud',
    'load_env_files',
]
