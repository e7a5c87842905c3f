"""DaFit watch face uploader.

  Pure Python package for uploading custom watch faces to MoYoung / DaFit
  smart watches over Bluetooth LE.
  """

from .device import DaFitWatch
from .discovery import DeviceCatalog, discover_device
from .exceptions import (
    AdapterUnavailable,
    BLEDisconnectedError,
    BLEError,
    BLETimeoutError,
    Cancelled,
    ChunkRetriesExhausted,
    ConnectError,
    ConnectionLost,
    ConnectionRefused,
    ConnectTimeout,
    DaFitError,
    DiscoveryError,
    EmptyFile,
    FileTooLarge,
    FinalizeFailed,
    HandshakeRejected,
    HandshakeTimeout,
    IncompatibleDevice,
    InputError,
    InvalidResponseError,
    MtuTooSmall,
    MultipleCandidates,
    NoDeviceFound,
    PartialUnavailable,
    ProtocolChannelNotFound,
    ProtocolError,
    QueryConnectionLost,
    QueryError,
    SessionBusyError,
    TransferError,
)
from .info import InfoReporter
from .models import (
    DeviceDescriptor,
    DeviceInfo,
    FailureReason,
    Packet,
    SelectionCriteria,
    TransferPhase,
    TransferResult,
    TransferState,
)
from .protocol import SERVICE_UUID, checksum, verify
from .transfer import TransferConfig, TransferEngine, TransferMachine
from .transport import Session, connect

__version__ = "0.1.0"

__all__ = [
    # Main API
    "DaFitWatch",
    "DeviceCatalog",
    "discover_device",
    "connect",
    "Session",
    "TransferEngine",
    "TransferMachine",
    "TransferConfig",
    "InfoReporter",
    "checksum",
    "verify",
    # Exceptions
    "DaFitError",
    "BLEError",
    "BLETimeoutError",
    "BLEDisconnectedError",
    "SessionBusyError",
    "ProtocolError",
    "InvalidResponseError",
    "DiscoveryError",
    "NoDeviceFound",
    "MultipleCandidates",
    "AdapterUnavailable",
    "ConnectError",
    "ConnectionRefused",
    "ProtocolChannelNotFound",
    "ConnectTimeout",
    "IncompatibleDevice",
    "TransferError",
    "HandshakeRejected",
    "HandshakeTimeout",
    "ChunkRetriesExhausted",
    "FinalizeFailed",
    "ConnectionLost",
    "Cancelled",
    "MtuTooSmall",
    "QueryError",
    "PartialUnavailable",
    "QueryConnectionLost",
    "InputError",
    "EmptyFile",
    "FileTooLarge",
    # Models
    "DeviceDescriptor",
    "SelectionCriteria",
    "DeviceInfo",
    "Packet",
    "TransferPhase",
    "TransferState",
    "TransferResult",
    "FailureReason",
    # Constants
    "SERVICE_UUID",
]
