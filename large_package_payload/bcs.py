# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS) subset used for payload preparation.

Only the encodings needed to build object deployment seeds are provided:
length-prefixed byte arrays, little-endian u64 values and ULEB128 lengths.

Learn more at https://github.com/diem/bcs

Examples:
    Building an object deployment seed::

        from large_package_payload.bcs import Serializer

        ser = Serializer()
        ser.to_bytes(b"aptos_framework::object_code_deployment")
        ser.u64(8)
        seed = ser.output()
"""

from __future__ import annotations

import io
import unittest

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1


class Deserializer:
    """Reads BCS values from a byte string in order.

    Used by tests and by callers that want to inspect a seed after it was
    built, e.g. to confirm which sequence number went into an object address.
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        return self._length - self._input.tell()

    def to_bytes(self) -> bytes:
        """Read a ULEB128 length followed by that many raw bytes."""
        return self._read(self.uleb128())

    def u64(self) -> int:
        return self._read_int(8)

    def uleb128(self) -> int:
        """Read a ULEB128 encoded length.

        Raises:
            Exception: If the encoded value exceeds the u32 range or the
                stream ends early.
        """
        value = 0
        shift = 0

        while value <= MAX_U32:
            byte = self._read_int(1)
            value |= (byte & 0x7F) << shift
            if byte & 0x80 == 0:
                break
            shift += 7

        if value > MAX_U32:
            raise Exception("Unexpectedly large uleb128 value")

        return value

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise Exception(error)
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=False)


class Serializer:
    """Accumulates BCS encoded values into a byte buffer.

    Examples:
        Encoding a length-prefixed byte array and a u64::

            ser = Serializer()
            ser.to_bytes(b"abc")
            ser.u64(1)
            ser.output()  # b"\\x03abc\\x01\\x00\\x00\\x00\\x00\\x00\\x00\\x00"
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def to_bytes(self, value: bytes):
        """Write a ULEB128 length followed by the raw bytes.

        This is the encoding of a Move `vector<u8>`, which is what the
        framework hashes when it derives code object seeds.
        """
        self.uleb128(len(value))
        self._output.write(value)

    def u8(self, value: int):
        if value > MAX_U8:
            raise Exception(f"Cannot encode {value} into u8")

        self._write_int(value, 1)

    def u64(self, value: int):
        if value > MAX_U64:
            raise Exception(f"Cannot encode {value} into u64")

        self._write_int(value, 8)

    def uleb128(self, value: int):
        if value > MAX_U32:
            raise Exception(f"Cannot encode {value} into uleb128")

        while value >= 0x80:
            # Write 7 (lowest) bits of data and set the 8th bit to 1.
            byte = value & 0x7F
            self.u8(byte | 0x80)
            value >>= 7

        # Write the remaining bits of data and set the highest bit to 0.
        self.u8(value & 0x7F)

    def _write_int(self, value: int, length: int):
        if value < 0:
            raise Exception(f"Cannot encode negative value {value}")
        self._output.write(value.to_bytes(length, "little", signed=False))


class Test(unittest.TestCase):
    def test_to_bytes(self):
        in_value = b"1234567890"

        ser = Serializer()
        ser.to_bytes(in_value)
        der = Deserializer(ser.output())
        out_value = der.to_bytes()

        self.assertEqual(in_value, out_value)

    def test_to_bytes_length_prefix(self):
        ser = Serializer()
        ser.to_bytes(b"aptos_framework::object_code_deployment")
        self.assertEqual(ser.output()[0], 39)
        self.assertEqual(len(ser.output()), 40)

    def test_u64(self):
        ser = Serializer()
        ser.u64(8)
        self.assertEqual(ser.output(), b"\x08" + b"\x00" * 7)

        der = Deserializer(ser.output())
        self.assertEqual(der.u64(), 8)
        self.assertEqual(der.remaining(), 0)

    def test_u64_overflow(self):
        ser = Serializer()
        with self.assertRaises(Exception):
            ser.u64(MAX_U64 + 1)

    def test_u64_negative(self):
        ser = Serializer()
        with self.assertRaises(Exception):
            ser.u64(-1)

    def test_uleb128(self):
        in_value = 4294967295

        ser = Serializer()
        ser.uleb128(in_value)
        der = Deserializer(ser.output())
        out_value = der.uleb128()

        self.assertEqual(in_value, out_value)

    def test_truncated_input(self):
        der = Deserializer(b"\x05ab")
        with self.assertRaises(Exception):
            der.to_bytes()


if __name__ == "__main__":
    unittest.main()
