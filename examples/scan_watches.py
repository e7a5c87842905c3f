"""List nearby watches and optionally read their identity.

Usage:
    uv run python examples/scan_watches.py --duration 10
    uv run python examples/scan_watches.py --name MOY --info
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime

from dawfu import DaFitError, DaFitWatch, DeviceCatalog, SelectionCriteria


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


async def listen(duration: float, name: str | None, read_info: bool) -> None:
    """Scan for the given duration, then print every matching device."""
    catalog = DeviceCatalog()
    criteria = SelectionCriteria(name=name, timeout=duration)

    print(f"[{_timestamp()}] Scanning for {duration:.0f}s...")
    try:
        await catalog.scan(criteria)
    except DaFitError as e:
        # Ambiguity is expected here; every match is listed below
        print(f"[{_timestamp()}] {e}")

    matches = [d for d in catalog.devices if criteria.matches(d)]
    for descriptor in matches:
        print(f"{descriptor.label} rssi={descriptor.rssi}")

    if not read_info:
        return

    for descriptor in matches:
        try:
            async with DaFitWatch(descriptor) as watch:
                info = await watch.read_info()
        except DaFitError as e:
            print(f"{descriptor.label}: {e}")
            continue
        print(
            f"{descriptor.label}: {info.manufacturer} {info.model_number} "
            f"fw={info.firmware_revision} battery={info.battery_level}%"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="List nearby DaFit watches")
    parser.add_argument("--duration", type=float, default=10.0, help="scan time in seconds")
    parser.add_argument("--name", help="only devices whose name contains this")
    parser.add_argument("--info", action="store_true", help="connect and read identity of each match")
    args = parser.parse_args()
    asyncio.run(listen(args.duration, args.name, args.info))


if __name__ == "__main__":
    main()
