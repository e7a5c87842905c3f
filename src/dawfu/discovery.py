"""BLE device discovery and target selection."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any

from bleak import BleakScanner
from bleak.exc import BleakError

from .exceptions import AdapterUnavailable, MultipleCandidates, NoDeviceFound
from .models.descriptor import DeviceDescriptor, SelectionCriteria, normalize_address

_LOGGER = logging.getLogger(__name__)


def _describe(criteria: SelectionCriteria) -> str:
    if criteria.address:
        return f"address {criteria.address}"
    if criteria.name:
        return f"name containing {criteria.name!r}"
    return "any device"


class DeviceCatalog:
    """Deduplicated cache of advertising peripherals.

    Entries are keyed by normalized address; a newer advertisement replaces
    the entry but keeps its first-seen time. The cache only grows, so it can
    be read while a scan is still feeding it.
    """

    def __init__(self) -> None:
        self._devices: dict[str, DeviceDescriptor] = {}

    @property
    def devices(self) -> list[DeviceDescriptor]:
        """Snapshot of known devices in first-seen order."""
        return sorted(self._devices.values(), key=lambda d: d.first_seen)

    def get(self, address: str) -> DeviceDescriptor | None:
        return self._devices.get(normalize_address(address))

    def observe(
            self,
            address: str,
            name: str | None = None,
            rssi: int | None = None,
            ble_device: Any = None,
            timestamp: float | None = None,
    ) -> DeviceDescriptor:
        """Record one advertisement.

        Args:
            address: Transport address of the advertiser
            name: Advertised local name (scan responses may omit it)
            rssi: Signal strength in dBm
            ble_device: Bleak handle for connecting later
            timestamp: Monotonic time of the advertisement (default: now)

        Returns:
            Updated descriptor
        """
        now = timestamp if timestamp is not None else time.monotonic()
        key = normalize_address(address)
        previous = self._devices.get(key)

        if previous is None:
            descriptor = DeviceDescriptor(
                address=address,
                name=name,
                rssi=rssi,
                first_seen=now,
                last_seen=now,
                ble_device=ble_device,
            )
            _LOGGER.info("Found device %s (rssi=%s)", descriptor.label, rssi)
        else:
            descriptor = replace(
                previous,
                name=name or previous.name,
                rssi=rssi if rssi is not None else previous.rssi,
                last_seen=now,
                ble_device=ble_device or previous.ble_device,
            )

        self._devices[key] = descriptor
        return descriptor

    def select(self, criteria: SelectionCriteria, keys: set[str] | None = None) -> DeviceDescriptor:
        """Pick the target device among cached entries.

        Args:
            criteria: Selection criteria
            keys: Restrict to these normalized addresses (default: whole cache)

        Raises:
            NoDeviceFound: If nothing matches
            MultipleCandidates: If a name filter or no filter matches several devices
        """
        matches = [
            d for d in self.devices
            if (keys is None or d.key in keys) and criteria.matches(d)
        ]

        if not matches:
            raise NoDeviceFound(
                f"No device with {_describe(criteria)} found within {criteria.timeout}s"
            )
        if criteria.address or len(matches) == 1:
            return matches[0]

        _LOGGER.warning(
            "%d devices match %s: %s",
            len(matches),
            _describe(criteria),
            ", ".join(d.label for d in matches),
        )
        raise MultipleCandidates(
            f"{len(matches)} devices match {_describe(criteria)}; "
            "select one with address=",
            matches,
        )

    async def scan(self, criteria: SelectionCriteria) -> DeviceDescriptor:
        """Listen for advertisements and select the target device.

        An address filter returns as soon as that address is seen; any
        other criteria listen for the full timeout before selecting.

        Args:
            criteria: Selection criteria, including adapter and timeout

        Returns:
            Selected device

        Raises:
            AdapterUnavailable: If scanning cannot start
            NoDeviceFound: If nothing matches before the timeout
            MultipleCandidates: If the selection is ambiguous
        """
        found = asyncio.Event()
        seen: set[str] = set()

        def callback(device, advertisement_data) -> None:
            descriptor = self.observe(
                device.address,
                advertisement_data.local_name or device.name,
                advertisement_data.rssi,
                device,
            )
            seen.add(descriptor.key)
            if criteria.address and criteria.matches(descriptor):
                found.set()

        kwargs: dict[str, Any] = {}
        if criteria.adapter_name:
            kwargs["adapter"] = criteria.adapter_name

        _LOGGER.info(
            "Scanning for %s (timeout=%.1fs, adapter=%s)",
            _describe(criteria),
            criteria.timeout,
            criteria.adapter_name or "default",
        )

        scanner = BleakScanner(detection_callback=callback, **kwargs)
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise AdapterUnavailable(
                f"Bluetooth adapter {criteria.adapter_name or '(default)'} unavailable: {e}"
            ) from e

        try:
            if criteria.address:
                try:
                    await asyncio.wait_for(found.wait(), timeout=criteria.timeout)
                except asyncio.TimeoutError:
                    pass
            else:
                await asyncio.sleep(criteria.timeout)
        finally:
            try:
                await scanner.stop()
            except BleakError as e:
                _LOGGER.warning("Error stopping scanner: %s", e)

        descriptor = self.select(criteria, seen)
        _LOGGER.info("Selected %s", descriptor.label)
        return descriptor


async def discover_device(criteria: SelectionCriteria) -> DeviceDescriptor:
    """Scan once with a fresh catalog and return the selected device."""
    return await DeviceCatalog().scan(criteria)
