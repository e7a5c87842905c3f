"""BLE protocol commands for MoYoung / DaFit watches."""

from __future__ import annotations

from enum import IntEnum

from bleak.uuids import normalize_uuid_16


class CommandCode(IntEnum):
    """Command byte of a MoYoung frame."""

    SWITCH_WATCH_FACE = 0x19      # Select the active watch face
    WATCH_FACE_TRANSFER = 0x74    # Custom watch face file transfer


# Frame layout: [magic:2][version:1][length:1][cmd:1][payload]
FRAME_MAGIC = b"\xfe\xea"
FRAME_VERSION = 0x20
FRAME_HEADER_SIZE = 5

# Vendor service and its characteristics
SERVICE_UUID = normalize_uuid_16(0xFEEA)
CONTROL_CHAR_UUID = normalize_uuid_16(0xFEE2)   # Commands (write)
DATA_CHAR_UUID = normalize_uuid_16(0xFEE6)      # File chunks (write)
NOTIFY_CHAR_UUID = normalize_uuid_16(0xFEE3)    # Responses (notify)

# Device Information (0x180a) and Battery (0x180f) characteristics
MODEL_NUMBER_CHAR_UUID = normalize_uuid_16(0x2A24)
SERIAL_NUMBER_CHAR_UUID = normalize_uuid_16(0x2A25)
FIRMWARE_REVISION_CHAR_UUID = normalize_uuid_16(0x2A26)
SOFTWARE_REVISION_CHAR_UUID = normalize_uuid_16(0x2A28)
MANUFACTURER_CHAR_UUID = normalize_uuid_16(0x2A29)
BATTERY_LEVEL_CHAR_UUID = normalize_uuid_16(0x2A19)

COMPATIBLE_MANUFACTURER = "MOYOUNG-V2"

# Chunking constants
CHUNK_SIZE = 244  # Data bytes per chunk; the watch addresses chunk n at n * 244
ATT_HEADER_SIZE = 3  # Write payload = MTU - ATT header
MAX_SEQUENCE = 0xFFFF  # Chunk numbers are uint16 on the wire
MAX_FILE_SIZE = 0xFFFFFFFF  # Size field is uint32 on the wire

# Watch face slot 13 shows the custom face stored in file 0x74
CUSTOM_FACE_SLOT = 0x0D


def build_frame(command: CommandCode, payload: bytes = b"") -> bytes:
    """Wrap a payload in the MoYoung frame header.

    Args:
        command: Command byte
        payload: Command arguments

    Returns:
        Frame bytes: fe ea 20 <len> <cmd> <payload>, len counting the whole frame
    """
    length = FRAME_HEADER_SIZE + len(payload)
    if length > 0xFF:
        raise ValueError(f"Frame payload too long: {len(payload)} bytes")
    return FRAME_MAGIC + bytes([FRAME_VERSION, length, command]) + payload


def build_transfer_start_command(total_size: int) -> bytes:
    """Build the start-of-transfer frame announcing the payload size.

    Format:
        [fe ea 20 09 74][size:4]
        - size: Total file size in bytes (big-endian uint32)
    """
    if not 0 < total_size <= MAX_FILE_SIZE:
        raise ValueError(f"Invalid transfer size: {total_size}")
    return build_frame(CommandCode.WATCH_FACE_TRANSFER, total_size.to_bytes(4, byteorder="big"))


def build_transfer_commit_command() -> bytes:
    """Build the end-of-transfer frame that commits the stored file.

    Returns:
        Command bytes: fe ea 20 09 74 00 00 00 00
    """
    return build_frame(CommandCode.WATCH_FACE_TRANSFER, bytes(4))


def build_switch_face_command(slot: int = CUSTOM_FACE_SLOT) -> bytes:
    """Build command selecting the displayed watch face.

    Format:
        [fe ea 20 06 19][slot:1]
    """
    if not 0 <= slot <= 0xFF:
        raise ValueError(f"Invalid watch face slot: {slot}")
    return build_frame(CommandCode.SWITCH_WATCH_FACE, bytes([slot]))
