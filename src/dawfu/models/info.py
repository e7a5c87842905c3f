"""Device identity model."""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from ..protocol.commands import COMPATIBLE_MANUFACTURER


@dataclass
class DeviceInfo:
    """Identity fields read from the watch.

    Any field may be None when the watch did not expose it or the read
    failed; its name is then listed in `unavailable`.
    """

    manufacturer: str | None = None
    model_number: str | None = None
    serial_number: str | None = None
    firmware_revision: str | None = None
    software_revision: str | None = None
    battery_level: int | None = None
    unavailable: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unavailable

    @property
    def is_compatible(self) -> bool:
        """Whether the manufacturer string identifies a supported watch."""
        return self.manufacturer == COMPATIBLE_MANUFACTURER

    def as_dict(self) -> dict[str, str | int | None]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "unavailable"}
