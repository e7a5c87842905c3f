"""Discovered device and selection criteria models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_ADDRESS_SEPARATORS = re.compile(r"[:\-_\s]")


def normalize_address(address: str) -> str:
    """Canonical form of a hardware address for comparisons.

    Separator tolerant and case-insensitive:
    "aa-bb-cc-dd-ee-ff", "AABBCCDDEEFF" and "AA:BB:CC:DD:EE:FF" all map to
    "AA:BB:CC:DD:EE:FF". Non-MAC identifiers (CoreBluetooth UUIDs) are only
    upper-cased.
    """
    compact = _ADDRESS_SEPARATORS.sub("", address).upper()
    if len(compact) == 12 and all(c in "0123456789ABCDEF" for c in compact):
        return ":".join(compact[i:i + 2] for i in range(0, 12, 2))
    return address.strip().upper()


@dataclass(frozen=True)
class DeviceDescriptor:
    """One advertising peripheral as last seen by the scanner.

    Attributes:
        address: Transport address (MAC, or UUID on macOS)
        name: Advertised local name, if any
        rssi: Signal strength of the latest advertisement in dBm
        first_seen: Monotonic time of the first advertisement
        last_seen: Monotonic time of the latest advertisement
        ble_device: Bleak handle used to connect
    """

    address: str
    name: str | None = None
    rssi: int | None = None
    first_seen: float = 0.0
    last_seen: float = 0.0
    ble_device: Any = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> str:
        return normalize_address(self.address)

    @property
    def label(self) -> str:
        return f"{self.name or '(unknown)'} [{self.address}]"


@dataclass(frozen=True)
class SelectionCriteria:
    """How to pick the target device.

    Attributes:
        name: Case-insensitive fragment of the advertised name
        address: Exact hardware address (any separator style)
        adapter: Adapter index (0 -> "hci0") or OS adapter name
        timeout: Discovery timeout in seconds
    """

    name: str | None = None
    address: str | None = None
    adapter: int | str | None = None
    timeout: float = 10.0

    @property
    def adapter_name(self) -> str | None:
        if self.adapter is None:
            return None
        if isinstance(self.adapter, int):
            return f"hci{self.adapter}"
        return self.adapter

    def matches(self, descriptor: DeviceDescriptor) -> bool:
        """Check one descriptor against the address or name filter."""
        if self.address:
            return descriptor.key == normalize_address(self.address)
        if self.name:
            return self.name.lower() in (descriptor.name or "").lower()
        return True
