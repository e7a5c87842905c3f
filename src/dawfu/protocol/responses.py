"""BLE notification parsing."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum

from ..exceptions import InvalidResponseError
from .commands import FRAME_HEADER_SIZE, FRAME_MAGIC, CommandCode


class NotificationKind(Enum):
    """Decoded notification types."""

    CHUNK_REQUEST = "chunk_request"
    TRANSFER_COMPLETE = "transfer_complete"
    OTHER = "other"


@dataclass(frozen=True)
class Notification:
    """One decoded notification from the watch.

    Attributes:
        kind: Notification type
        command: Command byte echoed by the watch
        value: Chunk number for CHUNK_REQUEST, device digest for TRANSFER_COMPLETE
        raw: Notification bytes as received
    """

    kind: NotificationKind
    command: int
    value: int | None = None
    raw: bytes = b""


def unpack_frame(data: bytes) -> tuple[int, bytes]:
    """Validate the frame header and split out command and payload.

    Args:
        data: Raw notification bytes

    Returns:
        Tuple of (command byte, payload)

    Raises:
        InvalidResponseError: If header is missing or length byte disagrees
    """
    if len(data) < FRAME_HEADER_SIZE:
        raise InvalidResponseError(
            f"Frame too short: {len(data)} bytes (need at least {FRAME_HEADER_SIZE})"
        )
    if data[0:2] != FRAME_MAGIC:
        raise InvalidResponseError(f"Bad frame magic: {data[0:2].hex()}")
    if data[3] != len(data):
        raise InvalidResponseError(
            f"Frame length mismatch: header says {data[3]}, got {len(data)} bytes"
        )
    return data[4], data[FRAME_HEADER_SIZE:]


def parse_notification(data: bytes) -> Notification:
    """Decode a notification from the watch.

    Transfer frames (command 0x74):
    - [fe ea 20 07 74][chunk:2 BE] - watch requests chunk number `chunk`
    - [fe ea 20 09 74][digest:4 BE] - watch stored all data

    Raises:
        InvalidResponseError: If the frame is malformed
    """
    data = bytes(data)
    command, payload = unpack_frame(data)

    if command == CommandCode.WATCH_FACE_TRANSFER:
        if len(payload) == 2:
            chunk = struct.unpack(">H", payload)[0]
            return Notification(NotificationKind.CHUNK_REQUEST, command, chunk, data)
        if len(payload) == 4:
            digest = struct.unpack(">I", payload)[0]
            return Notification(NotificationKind.TRANSFER_COMPLETE, command, digest, data)
        raise InvalidResponseError(
            f"Unexpected transfer payload length: {len(payload)} bytes"
        )

    return Notification(NotificationKind.OTHER, command, None, data)
