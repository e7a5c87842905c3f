"""Device identity queries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bleak.exc import BleakError

from .exceptions import (
    BLEDisconnectedError,
    BLETimeoutError,
    PartialUnavailable,
    QueryConnectionLost,
)
from .models.info import DeviceInfo
from .protocol import (
    BATTERY_LEVEL_CHAR_UUID,
    FIRMWARE_REVISION_CHAR_UUID,
    MANUFACTURER_CHAR_UUID,
    MODEL_NUMBER_CHAR_UUID,
    SERIAL_NUMBER_CHAR_UUID,
    SOFTWARE_REVISION_CHAR_UUID,
)

if TYPE_CHECKING:
    from .transport import Session

_LOGGER = logging.getLogger(__name__)

# DeviceInfo field -> characteristic, in read order
IDENTITY_FIELDS: tuple[tuple[str, str], ...] = (
    ("manufacturer", MANUFACTURER_CHAR_UUID),
    ("model_number", MODEL_NUMBER_CHAR_UUID),
    ("serial_number", SERIAL_NUMBER_CHAR_UUID),
    ("firmware_revision", FIRMWARE_REVISION_CHAR_UUID),
    ("software_revision", SOFTWARE_REVISION_CHAR_UUID),
    ("battery_level", BATTERY_LEVEL_CHAR_UUID),
)


def decode_string(data: bytes) -> str:
    """Decode a GATT string characteristic, dropping trailing NULs."""
    return data.decode("utf-8", errors="replace").rstrip("\x00").strip()


def decode_battery_level(data: bytes) -> int:
    """Battery Level characteristic: one byte, percent."""
    if not data:
        raise ValueError("Empty battery level")
    return data[0]


class InfoReporter:
    """Reads identity fields from a connected watch.

    Each characteristic is read independently with its own timeout; a read
    that fails only marks its field unavailable.
    """

    def __init__(self, read_timeout: float = 3.0):
        """Initialize reporter.

        Args:
            read_timeout: Timeout for each individual read in seconds (default: 3)
        """
        self.read_timeout = read_timeout

    async def query(self, session: Session, strict: bool = False) -> DeviceInfo:
        """Read every identity field.

        Args:
            session: Connected session, used exclusively for the duration
            strict: Raise if any field is unavailable

        Returns:
            DeviceInfo with unreadable fields left as None

        Raises:
            QueryConnectionLost: If the link drops during the query
            PartialUnavailable: In strict mode, if any field could not be read
        """
        info = DeviceInfo()

        async with session.claim():
            for field_name, uuid in IDENTITY_FIELDS:
                value = await self._read_field(session, field_name, uuid)
                if value is None:
                    info.unavailable.append(field_name)
                else:
                    setattr(info, field_name, value)

        _LOGGER.info(
            "Device info for %s: %s",
            session.address,
            ", ".join(f"{k}={v}" for k, v in info.as_dict().items()),
        )

        if not info.is_compatible and info.manufacturer is not None:
            _LOGGER.warning(
                "Manufacturer %r does not look like a compatible watch", info.manufacturer
            )

        if strict and info.unavailable:
            raise PartialUnavailable(
                f"Unavailable fields: {', '.join(info.unavailable)}", info
            )
        return info

    async def read_manufacturer(self, session: Session) -> str | None:
        """Read only the manufacturer string.

        Returns:
            Manufacturer, or None if the watch does not expose it or the read failed

        Raises:
            QueryConnectionLost: If the link drops during the read
        """
        async with session.claim():
            value = await self._read_field(session, "manufacturer", MANUFACTURER_CHAR_UUID)
        return value if isinstance(value, str) else None

    async def _read_field(self, session: Session, field_name: str, uuid: str) -> str | int | None:
        try:
            data = await session.read_characteristic(uuid, timeout=self.read_timeout)
        except BLEDisconnectedError as e:
            raise QueryConnectionLost(f"Connection lost while reading {field_name}") from e
        except (BLETimeoutError, BleakError) as e:
            _LOGGER.debug("Reading %s failed: %s", field_name, e)
            return None

        if data is None:
            _LOGGER.debug("Device does not expose %s (%s)", field_name, uuid)
            return None

        try:
            if field_name == "battery_level":
                return decode_battery_level(data)
            return decode_string(data)
        except ValueError as e:
            _LOGGER.debug("Could not decode %s: %s", field_name, e)
            return None
