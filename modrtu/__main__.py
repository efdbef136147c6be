"""
modrtu - Main entry point for running as a module
"""

import argparse
import json
import logging
import sys

from .config import (
    DEFAULT_PORT, DEFAULT_BAUDRATE, DEFAULT_TIMEOUT,
    DEFAULT_ATTEMPT_COUNT, DEFAULT_BYTEORDER
)
from .rtu import (
    ModbusRTUClient, ModbusError, ModbusConfigError,
    open_serial, detect_baudrate
)

# Configure logging
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser"""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--port', default=DEFAULT_PORT, help='Serial port')
    common.add_argument('--baudrate', type=int, default=DEFAULT_BAUDRATE, help='Baud rate')
    common.add_argument('--unit', type=int, default=1, help='Server address')
    common.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT,
                        help='Response timeout in seconds')
    common.add_argument('--attempts', type=int, default=DEFAULT_ATTEMPT_COUNT,
                        help='Attempts per retry scope')
    common.add_argument('--byteorder', choices=['big', 'little'], default=DEFAULT_BYTEORDER,
                        help='Register word byte order')
    common.add_argument('--verbose', action='store_true', help='Enable debug logging')

    parser = argparse.ArgumentParser(
        prog='modrtu', description='modrtu - Modbus RTU client for serial lines'
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    subparsers.add_parser('ping', parents=[common], help='Check that a server answers')
    subparsers.add_parser('autobaud', parents=[common], help='Detect the server baud rate')

    read_parser = subparsers.add_parser('read', parents=[common], help='Read holding registers')
    read_parser.add_argument('register', type=int, help='First register')
    read_parser.add_argument('count', type=int, nargs='?', default=1, help='Number of registers')

    input_parser = subparsers.add_parser('read-input', parents=[common], help='Read input registers')
    input_parser.add_argument('register', type=int, help='First register')
    input_parser.add_argument('count', type=int, nargs='?', default=1, help='Number of registers')

    write_parser = subparsers.add_parser('write', parents=[common], help='Write a holding register')
    write_parser.add_argument('register', type=int, help='Register')
    write_parser.add_argument('value', type=int, help='Value (0-65535)')

    coil_parser = subparsers.add_parser('coil', parents=[common], help='Switch a coil')
    coil_parser.add_argument('coil', type=int, help='Coil')
    coil_parser.add_argument('state', choices=['on', 'off'], help='Coil state')

    echo_parser = subparsers.add_parser('echo', parents=[common], help='Diagnostics echo')
    echo_parser.add_argument('data', type=int, nargs='+', help='Words to echo')

    return parser


def run_command(client: ModbusRTUClient, args) -> dict:
    """Execute one parsed command and return its JSON result"""
    unit = args.unit
    if args.command == 'ping':
        return {'unit': unit, 'reachable': client.ping(unit)}
    if args.command == 'autobaud':
        baudrate = detect_baudrate(client, unit)
        return {'unit': unit, 'detected': baudrate is not None, 'baudrate': baudrate}
    if args.command == 'read':
        values = client.read_holding_registers(unit, args.register, args.count)
        return {'unit': unit, 'register': args.register, 'values': values}
    if args.command == 'read-input':
        values = client.read_input_registers(unit, args.register, args.count)
        return {'unit': unit, 'register': args.register, 'values': values}
    if args.command == 'write':
        client.write_register(unit, args.register, args.value)
        return {'unit': unit, 'register': args.register, 'value': args.value}
    if args.command == 'coil':
        client.write_coil(unit, args.coil, args.state == 'on')
        return {'unit': unit, 'coil': args.coil, 'state': args.state}
    if args.command == 'echo':
        return {'unit': unit, 'echo': client.echo_query_data(unit, args.data)}
    raise ModbusConfigError(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    """Main entry point for the modrtu module"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.verbose:
        logging.getLogger('modrtu').setLevel(logging.DEBUG)

    transport = open_serial(args.port, args.baudrate)
    try:
        client = ModbusRTUClient(
            transport,
            attempt_count=args.attempts,
            timeout=args.timeout,
            byteorder=args.byteorder
        )
        try:
            result = run_command(client, args)
        except (ModbusError, ModbusConfigError) as e:
            logger.error(f"{args.command} failed: {e}")
            print(json.dumps({'unit': args.unit, 'error': type(e).__name__, 'message': str(e)}, indent=2))
            return 1
    finally:
        transport.close()

    print(json.dumps(result, indent=2))
    if args.command == 'ping':
        return 0 if result['reachable'] else 1
    if args.command == 'autobaud':
        return 0 if result['detected'] else 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
