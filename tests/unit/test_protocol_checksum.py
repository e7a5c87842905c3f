"""Test CRC-32 integrity helpers."""

import zlib

import pytest

from dawfu.protocol.checksum import checksum, checksum_bytes, verify


class TestChecksum:
    """Test digest computation."""

    def test_known_vector(self):
        """Standard CRC-32 check value."""
        assert checksum(b"123456789") == 0xCBF43926

    def test_empty(self):
        assert checksum(b"") == 0

    def test_byte_range(self):
        data = b"xx123456789yy"

        assert checksum(data, 2, 11) == 0xCBF43926

    def test_open_ended_range(self):
        data = b"header" + b"body"

        assert checksum(data, 6) == zlib.crc32(b"body")

    def test_trailer_is_big_endian(self):
        assert checksum_bytes(b"123456789") == b"\xcb\xf4\x39\x26"


class TestVerify:
    """Test digest verification."""

    @pytest.mark.parametrize("data", [b"", b"\x00", b"watch face", bytes(range(256)) * 4])
    def test_verify_own_checksum(self, data):
        assert verify(data, checksum(data))

    def test_single_bit_flips_detected(self):
        """CRC-32 detects every single-bit error."""
        data = bytearray(b"MOYOUNG-V2 custom face payload")
        digest = checksum(bytes(data))

        for byte_index in range(len(data)):
            for bit in range(8):
                data[byte_index] ^= 1 << bit
                assert not verify(bytes(data), digest)
                data[byte_index] ^= 1 << bit

    def test_verify_range(self):
        data = b"..abc.."

        assert verify(data, checksum(b"abc"), 2, 5)
        assert not verify(data, checksum(b"abc"))
