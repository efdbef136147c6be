"""
Tests for modrtu.rtu.base module - request engine and retry policy
"""
import logging
import unittest

from modrtu.config import TIMEOUT_BACKOFF
from modrtu.rtu.base import ModbusRTU
from modrtu.rtu.exceptions import (
    CRCError, ModbusTimeout, RequestError, InvalidResponseError,
    ModbusConfigError, ExceptionCode
)
from modrtu.rtu.mock import FakeClock, MockTransport
from modrtu.rtu.protocol import build_request


def corrupt(frame):
    """Flip one bit in the last data byte"""
    data = bytearray(frame)
    data[-3] ^= 0x01
    return bytes(data)


class TestModbusRTU(unittest.TestCase):
    """Test cases for the request engine"""

    def setUp(self):
        self.clock = FakeClock()
        self.good = build_request(7, 8, b'\x00\x00\x04\xd2')
        self.device_failure = build_request(7, 0x88, b'\x04')

    def make_rtu(self, responses=(), responder=None, **kwargs):
        self.transport = MockTransport(self.clock, responses=responses, responder=responder)
        return ModbusRTU(self.transport, clock=self.clock, sleep=self.clock.sleep, **kwargs)

    def backoffs(self):
        return [s for s in self.clock.sleeps if s == TIMEOUT_BACKOFF]

    def test_init_defaults(self):
        rtu = self.make_rtu()

        self.assertEqual(rtu.attempt_count, 5)
        self.assertEqual(rtu.timeout, 0.5)
        self.assertEqual(rtu.byteorder, 'big')

    def test_init_invalid_byteorder(self):
        with self.assertRaises(ModbusConfigError):
            self.make_rtu(byteorder='middle')

    def test_request_success(self):
        rtu = self.make_rtu(responses=[self.good])

        body = rtu.request(7, 8, [0, 1234])

        self.assertEqual(body, b'\x00\x00\x04\xd2')
        self.assertEqual(self.transport.written, [build_request(7, 8, b'\x00\x00\x04\xd2')])
        self.assertGreaterEqual(self.transport.flush_count, 1)
        self.assertEqual(self.transport.drain_count, 1)

    def test_request_by_name(self):
        rtu = self.make_rtu(responses=[self.good])

        rtu.request(7, 'diagnostics', [0, 1234])

        self.assertEqual(self.transport.written[0][1], 8)

    def test_unknown_function_name(self):
        rtu = self.make_rtu()

        with self.assertRaises(ModbusConfigError):
            rtu.request(7, 'no_such_function')
        self.assertEqual(self.transport.written, [])

    def test_custom_function_table(self):
        rtu = self.make_rtu(
            responses=[build_request(7, 0x41, b'\x01')],
            function_codes={'vendor_read': 0x41}
        )

        self.assertEqual(rtu.request(7, 'vendor_read'), b'\x01')
        with self.assertRaises(TypeError):
            rtu.function_codes['other'] = 0x42

    def test_payload_forms(self):
        rtu = self.make_rtu(responder=lambda frame: frame)

        rtu.request(7, 8, b'\x00\x00\x12\x34')
        rtu.request(7, 8, [0, 0x1234])
        self.assertEqual(self.transport.written[0], self.transport.written[1])

        rtu.request(7, 6, 0x1234)
        self.assertEqual(self.transport.written[2][2:4], b'\x12\x34')

    def test_little_endian_payload(self):
        rtu = self.make_rtu(responder=lambda frame: frame, byteorder='little')

        rtu.request(7, 3, [10, 1])

        self.assertEqual(self.transport.written[0][2:6], bytes([10, 0, 1, 0]))

    def test_crc_error_retried_without_backoff(self):
        rtu = self.make_rtu(responses=[corrupt(self.good), corrupt(self.good), self.good])

        body = rtu.request(7, 8, [0, 1234])

        self.assertEqual(body, b'\x00\x00\x04\xd2')
        self.assertEqual(len(self.transport.written), 3)
        self.assertEqual(self.backoffs(), [])

    def test_crc_error_exhausted(self):
        rtu = self.make_rtu(responder=lambda frame: corrupt(self.good))

        with self.assertRaises(CRCError):
            rtu.request(7, 8, [0, 1234])

        # Inner scope only; CRC failures are not repeated by the outer scope
        self.assertEqual(len(self.transport.written), 5)

    def test_short_reply_is_crc_error(self):
        rtu = self.make_rtu(responses=[b'\x07\x08', self.good])

        self.assertEqual(rtu.request(7, 8, [0, 1234]), b'\x00\x00\x04\xd2')
        self.assertEqual(len(self.transport.written), 2)

    def test_timeout_retried_with_backoff(self):
        rtu = self.make_rtu(responses=[None, None, self.good])

        body = rtu.request(7, 8, [0, 1234])

        self.assertEqual(body, b'\x00\x00\x04\xd2')
        self.assertEqual(len(self.transport.written), 3)
        self.assertEqual(self.backoffs(), [TIMEOUT_BACKOFF, TIMEOUT_BACKOFF])

    def test_timeout_exhausted(self):
        rtu = self.make_rtu()

        with self.assertRaises(ModbusTimeout):
            rtu.request(7, 8, [0, 1234], attempt_count=3, timeout=0.2)

        self.assertEqual(len(self.transport.written), 3)
        self.assertEqual(len(self.backoffs()), 2)
        self.assertGreaterEqual(self.clock.now, 3 * 0.2)

    def test_device_failure_retried(self):
        rtu = self.make_rtu(responses=[self.device_failure, self.device_failure, self.good])

        body = rtu.request(7, 8, [0, 1234])

        self.assertEqual(body, b'\x00\x00\x04\xd2')
        self.assertEqual(len(self.transport.written), 3)
        self.assertEqual(self.backoffs(), [])

    def test_device_failure_exhausted(self):
        rtu = self.make_rtu(responder=lambda frame: self.device_failure)

        with self.assertRaises(RequestError) as ctx:
            rtu.request(7, 8, [0, 1234])

        self.assertEqual(ctx.exception.exception_code, ExceptionCode.SERVER_DEVICE_FAILURE)
        self.assertEqual(len(self.transport.written), 5)

    def test_illegal_address_not_retried(self):
        rtu = self.make_rtu(responder=lambda frame: build_request(7, 0x83, b'\x02'))

        with self.assertRaises(RequestError) as ctx:
            rtu.request(7, 3, [1000, 1])

        self.assertEqual(ctx.exception.exception_code, ExceptionCode.ILLEGAL_DATA_ADDRESS)
        self.assertEqual(len(self.transport.written), 1)

    def test_mixed_failures(self):
        rtu = self.make_rtu(responses=[
            corrupt(self.good), None, self.device_failure, corrupt(self.good), self.good
        ])

        self.assertEqual(rtu.request(7, 8, [0, 1234]), b'\x00\x00\x04\xd2')
        self.assertEqual(len(self.transport.written), 5)
        self.assertEqual(self.backoffs(), [TIMEOUT_BACKOFF])

    def test_exception_without_code(self):
        rtu = self.make_rtu(responses=[build_request(7, 0x88)])

        with self.assertRaises(InvalidResponseError):
            rtu.request(7, 8, [0, 1234])

    def test_exchange_returns_error(self):
        rtu = self.make_rtu(responder=lambda frame: build_request(7, 0x88, b'\x01'))

        result = rtu.exchange(7, 8, [0, 1234])

        self.assertIsInstance(result, RequestError)
        self.assertEqual(result.exception_code, ExceptionCode.ILLEGAL_FUNCTION)

    def test_exchange_returns_body(self):
        rtu = self.make_rtu(responses=[self.good])
        self.assertEqual(rtu.exchange(7, 8, [0, 1234]), b'\x00\x00\x04\xd2')

    def test_broadcast_does_not_wait(self):
        rtu = self.make_rtu()

        self.assertEqual(rtu.request(0, 6, [1, 2]), b'')
        self.assertEqual(len(self.transport.written), 1)
        self.assertEqual(self.clock.sleeps, [])

    def test_stale_bytes_flushed_before_send(self):
        rtu = self.make_rtu(responses=[self.good])
        self.transport.inject(b'\xff\xfe\xfd')

        self.assertEqual(rtu.request(7, 8, [0, 1234]), b'\x00\x00\x04\xd2')

    def test_address_mismatch_logged(self):
        rtu = self.make_rtu(responses=[build_request(9, 8, b'\x00\x00\x04\xd2')])

        with self.assertLogs('modrtu.rtu.base', level=logging.WARNING) as logs:
            body = rtu.request(7, 8, [0, 1234])

        self.assertEqual(body, b'\x00\x00\x04\xd2')
        self.assertIn('Unit ID mismatch', logs.output[0])

    def test_closed_transport_propagates(self):
        rtu = self.make_rtu()
        self.transport.close()

        with self.assertRaises(ConnectionError):
            rtu.request(7, 8, [0, 1234])

    def test_invalid_attempt_count(self):
        rtu = self.make_rtu()

        with self.assertRaises(ModbusConfigError):
            rtu.request(7, 8, attempt_count=0)


if __name__ == '__main__':
    unittest.main()
