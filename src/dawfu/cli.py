"""Command line front end.

Usage:
    dawfu info name=MOY
    dawfu upload address=AA:BB:CC:DD:EE:FF watchface.bin
    dawfu upload name=MOY file=watchface.bin verbosity=2 adapter=1
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from .device import DaFitWatch
from .discovery import discover_device
from .exceptions import (
    BLEError,
    ConnectError,
    DiscoveryError,
    InputError,
    MultipleCandidates,
    ProtocolError,
    QueryError,
    TransferError,
)
from .models.descriptor import SelectionCriteria
from .models.info import DeviceInfo
from .models.transfer import TransferResult
from .protocol import CHUNK_SIZE, validate_payload

EXIT_SUCCESS = 0
EXIT_DEVICE_NOT_FOUND = 1
EXIT_DEVICE_ERROR = 2
EXIT_INVALID_INPUT = 3
EXIT_INTERRUPTED = 130

MODES = ("info", "upload", "help")
OPTION_KEYS = ("name", "address", "verbosity", "adapter", "timeout", "file", "force")


@dataclass
class CliOptions:
    """Parsed command line."""

    mode: str
    criteria: SelectionCriteria
    verbosity: int = 0
    filename: str | None = None
    force: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dawfu",
        description="Watch face uploader for MoYoung / DaFit smart watches.",
        epilog=(
            "options: name=NAME (devices whose name contains NAME), "
            "address=01:23:45:67:89:ab, adapter=INDEX, timeout=SECONDS, "
            "verbosity=0|1|2, file=WATCHFACE.BIN, force=1 (skip the manufacturer check)"
        ),
    )
    parser.add_argument("mode", nargs="?", default="help", choices=MODES, help="operation to run")
    parser.add_argument(
        "options",
        nargs="*",
        metavar="key=value | filename",
        help="selection options and the watch face file for upload",
    )
    return parser


def parse_options(mode: str, tokens: list[str]) -> CliOptions:
    """Turn key=value tokens and an optional filename into CliOptions.

    Raises:
        ValueError: On unknown keys, bad values or more than one filename
    """
    values: dict[str, str] = {}
    filename: str | None = None

    for token in tokens:
        if "=" in token:
            key, _, value = token.partition("=")
            key = key.strip().lower()
            if key == "verbose":
                key = "verbosity"
            if key not in OPTION_KEYS:
                raise ValueError(f"Unknown option {key!r}")
            values[key] = value
        elif filename is None:
            filename = token
        else:
            raise ValueError(f"Unexpected argument {token!r}")

    if "file" in values:
        if filename is not None:
            raise ValueError("File given twice")
        filename = values["file"]

    try:
        verbosity = int(values.get("verbosity", "0"))
        force = values.get("force", "0").strip().lower() in ("1", "true", "yes")
        timeout = float(values.get("timeout", "10"))
        adapter_value = values.get("adapter")
        adapter: int | str | None = None
        if adapter_value:
            adapter = int(adapter_value) if adapter_value.isdigit() else adapter_value
    except ValueError as e:
        raise ValueError(f"Invalid option value: {e}") from e

    if timeout <= 0:
        raise ValueError("timeout must be positive")

    criteria = SelectionCriteria(
        name=values.get("name") or None,
        address=values.get("address") or None,
        adapter=adapter,
        timeout=timeout,
    )
    return CliOptions(
        mode=mode, criteria=criteria, verbosity=verbosity, filename=filename, force=force
    )


def configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _print_progress(sent: int, total: int) -> None:
    print(f"\rSending watch face... {sent}/{total} bytes ({sent / total * 100:.0f}%)", end="", flush=True)
    if sent >= total:
        print()


def print_info(info: DeviceInfo) -> None:
    labels = {
        "manufacturer": "Manufacturer",
        "model_number": "Model Number",
        "serial_number": "Serial Number",
        "firmware_revision": "Firmware Revision",
        "software_revision": "Software Revision",
        "battery_level": "Battery Level",
    }
    for key, value in info.as_dict().items():
        shown = "(unavailable)" if value is None else value
        print(f"{labels[key] + ':':<20}{shown}")
    if info.manufacturer is not None and not info.is_compatible:
        print("This doesn't look like a compatible device.")


async def run_info(criteria: SelectionCriteria, dump: bool = False) -> DeviceInfo:
    descriptor = await discover_device(criteria)
    print(f"Connecting to {descriptor.label}...")
    async with DaFitWatch(descriptor, timeout=criteria.timeout) as watch:
        if dump:
            await watch.session.dump_services()
        return await watch.read_info()


async def run_upload(
        criteria: SelectionCriteria,
        data: bytes,
        dump: bool = False,
        force: bool = False,
) -> TransferResult:
    descriptor = await discover_device(criteria)
    print(f"Connecting to {descriptor.label}...")
    async with DaFitWatch(descriptor, timeout=criteria.timeout) as watch:
        if dump:
            await watch.session.dump_services()
        return await watch.upload_face(data, on_progress=_print_progress, force=force)


def _execute(options: CliOptions, parser: argparse.ArgumentParser) -> int:
    if options.mode == "help":
        parser.print_help()
        return EXIT_SUCCESS

    dump = options.verbosity >= 2
    if options.mode == "info":
        info = asyncio.run(run_info(options.criteria, dump=dump))
        print_info(info)
        return EXIT_SUCCESS

    if not options.filename:
        print("upload needs a watch face file", file=sys.stderr)
        return EXIT_INVALID_INPUT
    data = Path(options.filename).read_bytes()
    validate_payload(data, CHUNK_SIZE)

    result = asyncio.run(
        run_upload(options.criteria, data, dump=dump, force=options.force)
    )
    print(f"File send finished! {result.total} bytes in {result.elapsed:.1f}s")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = parse_options(args.mode, args.options)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    configure_logging(options.verbosity)

    try:
        return _execute(options, parser)
    except MultipleCandidates as e:
        print(f"Error: {e}", file=sys.stderr)
        for candidate in e.candidates:
            print(f"    {candidate.label} rssi={candidate.rssi}", file=sys.stderr)
        return EXIT_DEVICE_NOT_FOUND
    except DiscoveryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DEVICE_NOT_FOUND
    except TransferError as e:
        print(f"\nError: {e}; {e.progress}", file=sys.stderr)
        return EXIT_DEVICE_ERROR
    except (ConnectError, QueryError, ProtocolError, BLEError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DEVICE_ERROR
    except (InputError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
