"""Exceptions raised by the dawfu package."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.descriptor import DeviceDescriptor
    from .models.info import DeviceInfo


class DaFitError(Exception):
    """Base exception for all dawfu errors."""


# Transport level


class BLEError(DaFitError):
    """Low-level BLE transport failure."""


class BLETimeoutError(BLEError):
    """No notification or response arrived in time."""


class BLEDisconnectedError(BLEError):
    """The link dropped while an operation was using it."""


class SessionBusyError(BLEError):
    """Another protocol operation already owns the session."""


class ProtocolError(DaFitError):
    """Device sent something that violates the protocol."""


class InvalidResponseError(ProtocolError):
    """Notification could not be decoded."""


# Discovery


class DiscoveryError(DaFitError):
    """Target device could not be selected."""


class NoDeviceFound(DiscoveryError):
    """No advertisement matched the selection criteria before the timeout."""


class MultipleCandidates(DiscoveryError):
    """More than one device matched and the choice is ambiguous.

    Attributes:
        candidates: Every matching device, in first-seen order
        best: Deterministic best candidate (the first seen)
    """

    def __init__(self, message: str, candidates: list[DeviceDescriptor]):
        super().__init__(message)
        self.candidates = candidates

    @property
    def best(self) -> DeviceDescriptor:
        return self.candidates[0]


class AdapterUnavailable(DiscoveryError):
    """Bluetooth adapter missing, powered off or not accessible."""


# Connection


class ConnectError(DaFitError):
    """Session could not be established."""


class ConnectionRefused(ConnectError):
    """Peer unreachable or already linked to another central."""


class ProtocolChannelNotFound(ConnectError):
    """Connected device lacks the watch face transfer endpoints."""


class ConnectTimeout(ConnectError):
    """Connection attempt did not complete in time."""


class IncompatibleDevice(ConnectError):
    """Manufacturer string does not identify a supported watch.

    Attributes:
        manufacturer: Manufacturer reported by the device, or None if unreadable
    """

    def __init__(self, message: str, manufacturer: str | None = None):
        super().__init__(message)
        self.manufacturer = manufacturer


# Transfer


class TransferError(DaFitError):
    """Upload aborted.

    Attributes:
        offset: Bytes positively acknowledged before the failure
        total: Payload length
        retries: Retry count of the chunk in flight when it failed
    """

    def __init__(self, message: str, offset: int = 0, total: int = 0, retries: int = 0):
        super().__init__(message)
        self.offset = offset
        self.total = total
        self.retries = retries

    @property
    def progress(self) -> str:
        return f"uploaded {self.offset} of {self.total} bytes before failure"


class HandshakeRejected(TransferError):
    """Device answered the start-of-transfer frame negatively."""


class HandshakeTimeout(TransferError):
    """Device never answered the start-of-transfer frame."""


class ChunkRetriesExhausted(TransferError):
    """One chunk was rejected or timed out more often than allowed."""


class FinalizeFailed(TransferError):
    """Commit of the completed transfer failed."""


class ConnectionLost(TransferError):
    """Link dropped mid-transfer; the upload must restart from zero."""


class Cancelled(TransferError):
    """Upload cancelled by the caller."""


class MtuTooSmall(TransferError):
    """Link cannot carry a full chunk in one write."""


# Query


class QueryError(DaFitError):
    """Identity query failed."""


class PartialUnavailable(QueryError):
    """Some identity fields could not be read (strict mode only)."""

    def __init__(self, message: str, info: DeviceInfo):
        super().__init__(message)
        self.info = info


class QueryConnectionLost(QueryError):
    """Link dropped during the identity query."""


# Input


class InputError(DaFitError):
    """Payload cannot be sent with this protocol."""


class EmptyFile(InputError):
    """Payload has no bytes."""


class FileTooLarge(InputError):
    """Payload exceeds what the protocol can address."""
