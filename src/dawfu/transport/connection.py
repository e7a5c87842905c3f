"""BLE session management."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from bleak import BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import (
    BLEDisconnectedError,
    BLETimeoutError,
    ConnectionRefused,
    ConnectTimeout,
    ProtocolChannelNotFound,
    SessionBusyError,
)
from ..protocol import (
    CONTROL_CHAR_UUID,
    DATA_CHAR_UUID,
    NOTIFY_CHAR_UUID,
    SERVICE_UUID,
)

if TYPE_CHECKING:
    from bleak import BleakClient
    from bleak.backends.characteristic import BleakGATTCharacteristic

    from ..models.descriptor import DeviceDescriptor

_LOGGER = logging.getLogger(__name__)

# Pushed into the notification queue when the link drops
_DISCONNECTED = None


class Session:
    """Live link to one watch with its resolved protocol channels.

    Features:
    - Channel resolution by UUID on the vendor service
    - Notification queue fed by bleak callbacks
    - Disconnects wake a suspended reader immediately
    - Exclusive ownership: one protocol operation at a time
    """

    def __init__(self, client: BleakClient, address: str, name: str | None = None):
        """Wrap a connected client.

        Args:
            client: Connected bleak client
            address: Device address (for logging and errors)
            name: Advertised name, if known
        """
        self.address = address
        self.name = name

        self._client: BleakClient | None = client
        self._notification_queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._disconnected = False
        self._busy = False
        self._control_char: BleakGATTCharacteristic | None = None
        self._data_char: BleakGATTCharacteristic | None = None
        self._notify_char: BleakGATTCharacteristic | None = None

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        """Check if the link is still up."""
        return (
            not self._disconnected
            and self._client is not None
            and self._client.is_connected
        )

    @property
    def mtu_size(self) -> int | None:
        """Negotiated ATT MTU, if the backend reports one."""
        if self._client is None:
            return None
        return getattr(self._client, "mtu_size", None)

    async def acquire_mtu(self) -> int | None:
        """Refresh the negotiated ATT MTU from the backend.

        BlueZ reports the 23-byte default until the MTU is acquired through
        an AcquireWrite or AcquireNotify call; other backends already know it.

        Returns:
            Negotiated MTU, or None if the backend does not report one
        """
        if self._client is None:
            return None
        backend = getattr(self._client, "_backend", None)
        acquire = getattr(backend, "_acquire_mtu", None)
        if acquire is not None:
            try:
                await acquire()
            except BleakError as e:
                _LOGGER.warning("Could not acquire MTU from %s: %s", self.address, e)
        mtu_size = self.mtu_size
        _LOGGER.debug("ATT MTU for %s: %s", self.address, mtu_size)
        return mtu_size

    async def dump_services(self, timeout: float = 3.0) -> None:
        """Log every service and characteristic, with the value of readable ones.

        Args:
            timeout: Timeout for each characteristic read in seconds
        """
        client = self._require_connected()
        for service in client.services:
            _LOGGER.debug("Service %s (%s)", service.uuid, service.description)
            for char in service.characteristics:
                _LOGGER.debug(
                    "    %s (%s) [%s]",
                    char.uuid,
                    char.description,
                    ", ".join(char.properties),
                )
                if "read" not in char.properties:
                    continue
                try:
                    value = await asyncio.wait_for(client.read_gatt_char(char), timeout=timeout)
                except (asyncio.TimeoutError, BleakError) as e:
                    _LOGGER.debug("    %s read failed: %s", char.uuid, str(e) or type(e).__name__)
                    continue
                _LOGGER.debug("    %s data: %s", char.uuid, bytes(value).hex(" "))

    async def resolve_channels(self) -> None:
        """Locate the transfer characteristics and start notifications.

        Raises:
            ProtocolChannelNotFound: If the vendor service or any channel is missing
        """
        if self._client is None:
            raise BLEDisconnectedError("Session closed")

        service = self._client.services.get_service(SERVICE_UUID)
        if service is None:
            raise ProtocolChannelNotFound(
                f"Service {SERVICE_UUID} not found on {self.address}; "
                "this does not look like a compatible watch"
            )

        self._control_char = service.get_characteristic(CONTROL_CHAR_UUID)
        self._data_char = service.get_characteristic(DATA_CHAR_UUID)
        self._notify_char = service.get_characteristic(NOTIFY_CHAR_UUID)

        missing = [
            uuid
            for uuid, char in (
                (CONTROL_CHAR_UUID, self._control_char),
                (DATA_CHAR_UUID, self._data_char),
                (NOTIFY_CHAR_UUID, self._notify_char),
            )
            if char is None
        ]
        if missing:
            raise ProtocolChannelNotFound(
                f"Device {self.address} lacks characteristics: {', '.join(missing)}"
            )

        await self._client.start_notify(self._notify_char, self._notification_callback)
        _LOGGER.debug("Notifications started on %s", NOTIFY_CHAR_UUID)

    def _notification_callback(self, sender, data: bytearray) -> None:
        """Queue an incoming notification.

        Args:
            sender: Characteristic that sent notification
            data: Notification data
        """
        _LOGGER.debug("RECV: %s", bytes(data).hex(" "))
        self._notification_queue.put_nowait(bytes(data))

    def _disconnected_callback(self, client) -> None:
        if self._disconnected:
            return
        _LOGGER.warning("Device %s disconnected", self.address)
        self._disconnected = True
        self._notification_queue.put_nowait(_DISCONNECTED)

    def _require_connected(self) -> BleakClient:
        if not self.is_connected or self._client is None:
            raise BLEDisconnectedError(f"Not connected to {self.address}")
        return self._client

    async def _write(self, char, data: bytes, response: bool) -> None:
        client = self._require_connected()
        _LOGGER.debug("SEND: %s", data.hex(" "))
        try:
            await client.write_gatt_char(char, data, response=response)
        except BleakError as e:
            if not self.is_connected:
                raise BLEDisconnectedError(f"Device disconnected: {e}") from e
            raise

    async def write_control(self, data: bytes, response: bool = False) -> None:
        """Write a command frame to the control channel.

        Args:
            data: Frame bytes
            response: Wait for the ATT write response

        Raises:
            BLEDisconnectedError: If the link is down
        """
        await self._write(self._control_char, data, response)

    async def write_data(self, data: bytes) -> None:
        """Write a chunk frame to the data channel (without response)."""
        await self._write(self._data_char, data, response=False)

    async def read_notification(self, timeout: float) -> bytes:
        """Wait for the next notification.

        Args:
            timeout: Seconds to wait

        Returns:
            Notification data

        Raises:
            BLETimeoutError: If nothing arrives in time
            BLEDisconnectedError: If the link drops while waiting
        """
        if self._disconnected and self._notification_queue.empty():
            raise BLEDisconnectedError(f"Device {self.address} disconnected")
        try:
            data = await asyncio.wait_for(self._notification_queue.get(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"No notification received within {timeout}s") from e
        if data is _DISCONNECTED:
            raise BLEDisconnectedError(f"Device {self.address} disconnected")
        return data

    def clear_notifications(self) -> None:
        """Drop queued notifications left over from an earlier exchange."""
        while not self._notification_queue.empty():
            item = self._notification_queue.get_nowait()
            if item is _DISCONNECTED:
                self._notification_queue.put_nowait(item)
                break

    async def read_characteristic(self, uuid: str, timeout: float) -> bytes | None:
        """Read a characteristic by UUID.

        Returns:
            Value read, or None if the device does not expose the characteristic

        Raises:
            BLETimeoutError: If the read does not complete in time
            BLEDisconnectedError: If the link is down
        """
        client = self._require_connected()
        char = client.services.get_characteristic(uuid)
        if char is None:
            return None
        try:
            data = await asyncio.wait_for(client.read_gatt_char(char), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"Read of {uuid} timed out after {timeout}s") from e
        except BleakError as e:
            if not self.is_connected:
                raise BLEDisconnectedError(f"Device disconnected: {e}") from e
            raise
        return bytes(data)

    @asynccontextmanager
    async def claim(self):
        """Hold the session for one protocol operation.

        Raises:
            SessionBusyError: If another operation already holds it
        """
        if self._busy:
            raise SessionBusyError(f"Session to {self.address} is already in use")
        self._busy = True
        try:
            yield self
        finally:
            self._busy = False

    async def close(self) -> None:
        """Disconnect from device."""
        client, self._client = self._client, None
        if client is None:
            return
        self._disconnected = True
        if client.is_connected:
            try:
                _LOGGER.debug("Disconnecting from %s", self.address)
                await client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)


async def connect(descriptor: DeviceDescriptor, timeout: float = 10.0) -> Session:
    """Connect to a discovered watch and resolve its protocol channels.

    No retries: a watch that still holds a stale link tends to get worse
    with repeated attempts, so retrying is left to the caller.

    Args:
        descriptor: Device picked by discovery
        timeout: Connection timeout in seconds (default: 10)

    Returns:
        Connected session with notifications enabled

    Raises:
        ConnectionRefused: If the watch cannot be reached or refuses the link
        ConnectTimeout: If connecting takes longer than timeout
        ProtocolChannelNotFound: If the device is not a compatible watch
    """
    session: Session | None = None

    def _on_disconnect(client) -> None:
        if session is not None:
            session._disconnected_callback(client)

    _LOGGER.debug("Connecting to %s (timeout=%.1fs)", descriptor.label, timeout)
    try:
        device = descriptor.ble_device
        if device is None:
            # Descriptor built from an address only; resolve it first
            device = await BleakScanner.find_device_by_address(
                descriptor.address, timeout=timeout
            )
            if device is None:
                raise ConnectionRefused(f"Device {descriptor.address} not reachable")
        client = await establish_connection(
            client_class=BleakClientWithServiceCache,
            device=device,
            name=descriptor.name or descriptor.address,
            disconnected_callback=_on_disconnect,
            max_attempts=1,
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectTimeout(f"Connection timeout after {timeout}s") from e
    except BleakError as e:
        # establish_connection reports its own timeouts as BleakNotFoundError
        if isinstance(e.__cause__, asyncio.TimeoutError):
            raise ConnectTimeout(f"Connection timeout after {timeout}s: {e}") from e
        raise ConnectionRefused(
            f"Failed to connect to {descriptor.label}: {e}. The watch accepts only "
            "one link at a time; disconnect it from the phone app and retry"
        ) from e

    session = Session(client, descriptor.address, descriptor.name)
    _LOGGER.debug("Connected to %s", descriptor.address)

    try:
        await session.resolve_channels()
        await session.acquire_mtu()
    except BleakError as e:
        await session.close()
        raise ConnectionRefused(f"Failed to enable notifications: {e}") from e
    except BaseException:
        await session.close()
        raise
    return session
