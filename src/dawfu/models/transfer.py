"""Transfer state and packet models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TransferPhase(Enum):
    """Phases of the watch face transfer state machine."""

    IDLE = "idle"
    NEGOTIATING = "negotiating"
    SENDING = "sending"
    AWAITING_ACK = "awaiting_ack"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferPhase.COMPLETE, TransferPhase.ABORTED)


class FailureReason(Enum):
    """Why a transfer ended in ABORTED."""

    HANDSHAKE_REJECTED = "handshake_rejected"
    HANDSHAKE_TIMEOUT = "handshake_timeout"
    CHUNK_RETRIES_EXHAUSTED = "chunk_retries_exhausted"
    FINALIZE_FAILED = "finalize_failed"
    CONNECTION_LOST = "connection_lost"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Packet:
    """One chunk frame.

    Attributes:
        sequence: Chunk number on the wire
        offset: Position of the payload in the file
        payload: Slice of the file carried by this frame
        trailer: Integrity trailer (empty when the device takes raw chunks)
    """

    sequence: int
    offset: int
    payload: bytes
    trailer: bytes = b""

    @property
    def length(self) -> int:
        """Payload bytes carried (excludes trailer)."""
        return len(self.payload)

    @property
    def end(self) -> int:
        return self.offset + len(self.payload)

    def to_bytes(self) -> bytes:
        return self.payload + self.trailer


@dataclass
class TransferState:
    """Mutable progress of a single upload."""

    total: int
    chunk_size: int
    offset: int = 0
    phase: TransferPhase = TransferPhase.IDLE
    awaiting_ack: bool = False
    retries: int = 0
    failure: FailureReason | None = None
    detail: str = ""
    chunks_sent: int = 0
    retransmissions: int = 0
    device_checksum: int | None = None
    history: list[TransferPhase] = field(default_factory=list)


@dataclass
class TransferResult:
    """Summary of a completed upload."""

    total: int
    chunks_sent: int
    retransmissions: int
    checksum: int
    device_checksum: int | None = None
    elapsed: float = 0.0
