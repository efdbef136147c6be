"""
Tests for modrtu.rtu.crc module
"""
import random
import struct
import unittest

from modrtu.rtu.crc import calculate_crc, append_crc, validate_crc


class TestCalculateCRC(unittest.TestCase):
    """Known CRC-16/MODBUS values"""

    def test_check_value(self):
        self.assertEqual(calculate_crc(b'123456789'), 0x4B37)

    def test_read_holding_request(self):
        # 01 03 00 00 00 01 is sent on the wire followed by 84 0A
        self.assertEqual(calculate_crc(b'\x01\x03\x00\x00\x00\x01'), 0x0A84)

    def test_known_register_read(self):
        self.assertEqual(calculate_crc(b'\x01\x03\x01\x00\x00\x01'), 0xF685)

    def test_empty_data(self):
        self.assertEqual(calculate_crc(b''), 0xFFFF)

    def test_accepts_bytearray(self):
        self.assertEqual(calculate_crc(bytearray(b'123456789')), 0x4B37)


class TestAppendAndValidate(unittest.TestCase):
    """CRC appended low byte first leaves a zero residue"""

    def test_append_little_endian(self):
        frame = append_crc(b'\x01\x03\x00\x00\x00\x01')
        self.assertEqual(frame, bytes([0x01, 0x03, 0x00, 0x00, 0x00, 0x01, 0x84, 0x0A]))

    def test_residue_is_zero(self):
        rng = random.Random(1234)
        for length in (0, 1, 2, 7, 64, 252):
            data = bytes(rng.randrange(256) for _ in range(length))
            frame = data + struct.pack('<H', calculate_crc(data))
            self.assertEqual(calculate_crc(frame), 0, f"length {length}")
            self.assertTrue(validate_crc(frame))

    def test_single_bit_flip_detected(self):
        frame = append_crc(b'\x07\x03\x02\x12\x34')
        for index in range(len(frame)):
            for bit in range(8):
                corrupted = bytearray(frame)
                corrupted[index] ^= 1 << bit
                self.assertFalse(validate_crc(bytes(corrupted)), f"byte {index} bit {bit}")

    def test_too_short(self):
        self.assertFalse(validate_crc(b''))
        self.assertFalse(validate_crc(b'\x01'))


if __name__ == '__main__':
    unittest.main()
