"""BLE protocol implementation."""

from .checksum import checksum, checksum_bytes, verify
from .chunking import (
    build_packet,
    frame_size,
    iter_packets,
    link_fits_chunk,
    max_payload_size,
    validate_payload,
)
from .commands import (
    BATTERY_LEVEL_CHAR_UUID,
    ATT_HEADER_SIZE,
    CHUNK_SIZE,
    COMPATIBLE_MANUFACTURER,
    CONTROL_CHAR_UUID,
    CUSTOM_FACE_SLOT,
    DATA_CHAR_UUID,
    FIRMWARE_REVISION_CHAR_UUID,
    MANUFACTURER_CHAR_UUID,
    MODEL_NUMBER_CHAR_UUID,
    NOTIFY_CHAR_UUID,
    SERIAL_NUMBER_CHAR_UUID,
    SERVICE_UUID,
    SOFTWARE_REVISION_CHAR_UUID,
    CommandCode,
    build_frame,
    build_switch_face_command,
    build_transfer_commit_command,
    build_transfer_start_command,
)
from .responses import Notification, NotificationKind, parse_notification

__all__ = [
    "CommandCode",
    "SERVICE_UUID",
    "CONTROL_CHAR_UUID",
    "DATA_CHAR_UUID",
    "NOTIFY_CHAR_UUID",
    "MANUFACTURER_CHAR_UUID",
    "MODEL_NUMBER_CHAR_UUID",
    "SERIAL_NUMBER_CHAR_UUID",
    "FIRMWARE_REVISION_CHAR_UUID",
    "SOFTWARE_REVISION_CHAR_UUID",
    "BATTERY_LEVEL_CHAR_UUID",
    "COMPATIBLE_MANUFACTURER",
    "CHUNK_SIZE",
    "ATT_HEADER_SIZE",
    "CUSTOM_FACE_SLOT",
    "build_frame",
    "build_transfer_start_command",
    "build_transfer_commit_command",
    "build_switch_face_command",
    "build_packet",
    "iter_packets",
    "frame_size",
    "link_fits_chunk",
    "max_payload_size",
    "validate_payload",
    "checksum",
    "checksum_bytes",
    "verify",
    "Notification",
    "NotificationKind",
    "parse_notification",
]
