"""Payload slicing into chunk frames."""

from __future__ import annotations

from collections.abc import Iterator

from ..exceptions import EmptyFile, FileTooLarge
from ..models.transfer import Packet
from .checksum import CHECKSUM_SIZE, checksum_bytes
from .commands import ATT_HEADER_SIZE, MAX_FILE_SIZE, MAX_SEQUENCE


def max_payload_size(chunk_size: int) -> int:
    """Largest file the protocol can address with this chunk size."""
    return min((MAX_SEQUENCE + 1) * chunk_size, MAX_FILE_SIZE)


def validate_payload(data: bytes, chunk_size: int) -> None:
    """Reject payloads the transfer protocol cannot carry.

    Raises:
        EmptyFile: If data is empty
        FileTooLarge: If data needs more chunks than the sequence field allows
    """
    if not data:
        raise EmptyFile("Watch face file is empty")
    limit = max_payload_size(chunk_size)
    if len(data) > limit:
        raise FileTooLarge(
            f"Watch face file is {len(data)} bytes, protocol limit is {limit} bytes "
            f"at chunk size {chunk_size}"
        )


def frame_size(chunk_size: int, trailer: bool = False) -> int:
    """Bytes written per chunk frame."""
    return chunk_size + (CHECKSUM_SIZE if trailer else 0)


def max_write_size(mtu_size: int | None) -> int | None:
    """Largest ATT write payload the link carries, or None if unknown."""
    if mtu_size is None:
        return None
    return mtu_size - ATT_HEADER_SIZE


def link_fits_chunk(chunk_size: int, mtu_size: int | None, trailer: bool = False) -> bool:
    """Whether one chunk frame fits in a single write on this link.

    The watch locates chunk n at offset n * chunk_size, so the chunk size is
    fixed by the protocol and cannot shrink to suit a small MTU.

    Args:
        chunk_size: Payload bytes per chunk
        mtu_size: Negotiated ATT MTU, or None if the backend does not report it
        trailer: Whether each frame carries a CRC-32 trailer
    """
    limit = max_write_size(mtu_size)
    return limit is None or frame_size(chunk_size, trailer) <= limit


def build_packet(data: bytes, offset: int, chunk_size: int, trailer: bool = False) -> Packet:
    """Slice the chunk starting at offset.

    Chunk boundaries are multiples of chunk_size so the sequence number and
    the offset always identify the same bytes.
    """
    if offset % chunk_size:
        raise ValueError(f"Offset {offset} is not on a chunk boundary ({chunk_size})")
    if not 0 <= offset < len(data):
        raise ValueError(f"Offset {offset} outside payload of {len(data)} bytes")

    payload = bytes(data[offset:offset + chunk_size])
    return Packet(
        sequence=offset // chunk_size,
        offset=offset,
        payload=payload,
        trailer=checksum_bytes(payload) if trailer else b"",
    )


def iter_packets(data: bytes, chunk_size: int, trailer: bool = False) -> Iterator[Packet]:
    """Yield every chunk of data in order."""
    for offset in range(0, len(data), chunk_size):
        yield build_packet(data, offset, chunk_size, trailer)
