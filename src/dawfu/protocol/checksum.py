"""Integrity digests for transferred data.

CRC-32 (IEEE 802.3, reflected polynomial 0xEDB88320, as computed by zlib).
Non-cryptographic: it catches transmission errors, not tampering.
"""

from __future__ import annotations

import zlib

CHECKSUM_SIZE = 4


def checksum(data: bytes, start: int = 0, end: int | None = None) -> int:
    """Compute the CRC-32 of data[start:end]."""
    view = memoryview(data)[start:end]
    return zlib.crc32(view) & 0xFFFFFFFF


def verify(data: bytes, digest: int, start: int = 0, end: int | None = None) -> bool:
    """Check data[start:end] against a previously computed digest."""
    return checksum(data, start, end) == digest & 0xFFFFFFFF


def checksum_bytes(data: bytes) -> bytes:
    """CRC-32 of data as a big-endian trailer."""
    return checksum(data).to_bytes(CHECKSUM_SIZE, byteorder="big")
