"""Main DaFit watch device class."""

from __future__ import annotations

import asyncio
import logging

from .exceptions import IncompatibleDevice
from .info import InfoReporter
from .models.descriptor import DeviceDescriptor
from .models.info import DeviceInfo
from .models.transfer import TransferResult
from .protocol import COMPATIBLE_MANUFACTURER, CUSTOM_FACE_SLOT, build_switch_face_command
from .transfer import ProgressCallback, TransferConfig, TransferEngine
from .transport import Session, connect

_LOGGER = logging.getLogger(__name__)


class DaFitWatch:
    """MoYoung / DaFit smart watch.

    Main API for talking to one watch.

    Usage:
        descriptor = await discover_device(SelectionCriteria(name="MOY"))
        async with DaFitWatch(descriptor) as watch:
            info = await watch.read_info()

        async with DaFitWatch(descriptor) as watch:
            await watch.upload_face(data)
    """

    # Time for the watch to store the face before the link drops
    SETTLE_DELAY = 1.0

    def __init__(
            self,
            descriptor: DeviceDescriptor,
            config: TransferConfig | None = None,
            timeout: float = 10.0,
    ):
        """Initialize watch.

        Args:
            descriptor: Device picked by discovery
            config: Transfer parameters (default: TransferConfig())
            timeout: Connection timeout in seconds (default: 10)
        """
        self.descriptor = descriptor
        self.config = config or TransferConfig()
        self.timeout = timeout
        self._session: Session | None = None

    async def __aenter__(self) -> DaFitWatch:
        """Connect to the watch."""
        self._session = await connect(self.descriptor, timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect from the watch."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("Watch not connected - use 'async with DaFitWatch(...)'")
        return self._session

    async def read_info(self, strict: bool = False) -> DeviceInfo:
        """Read identity fields (manufacturer, revisions, battery)."""
        return await InfoReporter().query(self.session, strict=strict)

    async def upload_face(
            self,
            data: bytes,
            activate: bool = True,
            on_progress: ProgressCallback | None = None,
            cancel: asyncio.Event | None = None,
            force: bool = False,
    ) -> TransferResult:
        """Upload a custom watch face.

        The manufacturer string is checked first; anything other than
        MOYOUNG-V2 (or an unreadable one) stops before a byte is sent.

        Args:
            data: Watch face binary, sent as-is
            activate: Switch the display to the custom face afterwards
            on_progress: Called with (acknowledged bytes, total)
            cancel: Set to abort the upload
            force: Skip the manufacturer check

        Raises:
            IncompatibleDevice: If the watch is not a supported model
            InputError: If data cannot be sent
            TransferError: If the upload aborted
        """
        if force:
            _LOGGER.warning("Skipping compatibility check for %s", self.descriptor.label)
        else:
            await self.check_compatible()

        result = await TransferEngine(self.config).upload(
            self.session,
            data,
            on_progress=on_progress,
            cancel=cancel,
        )
        if activate:
            await self.activate_face()
        await asyncio.sleep(self.SETTLE_DELAY)
        return result

    async def check_compatible(self) -> str:
        """Confirm the manufacturer string names a supported watch.

        Returns:
            Manufacturer string

        Raises:
            IncompatibleDevice: If it is missing or names another vendor
        """
        manufacturer = await InfoReporter().read_manufacturer(self.session)
        if manufacturer != COMPATIBLE_MANUFACTURER:
            raise IncompatibleDevice(
                f"{self.descriptor.label} reports manufacturer {manufacturer!r}, "
                f"expected {COMPATIBLE_MANUFACTURER!r}; use force to upload anyway",
                manufacturer=manufacturer,
            )
        return manufacturer

    async def activate_face(self, slot: int = CUSTOM_FACE_SLOT) -> None:
        """Show the watch face stored in the given slot."""
        _LOGGER.info("Switching to watch face #%d", slot)
        async with self.session.claim():
            await self.session.write_control(build_switch_face_command(slot))
