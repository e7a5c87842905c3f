"""Data models for DaFit watches."""

from .transfer import (
    FailureReason,
    Packet,
    TransferPhase,
    TransferResult,
    TransferState,
)
from .descriptor import DeviceDescriptor, SelectionCriteria, normalize_address
from .info import DeviceInfo

__all__ = [
    "DeviceDescriptor",
    "DeviceInfo",
    "FailureReason",
    "Packet",
    "SelectionCriteria",
    "TransferPhase",
    "TransferResult",
    "TransferState",
    "normalize_address",
]
