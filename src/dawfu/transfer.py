"""Watch face transfer state machine and its asyncio driver.

The upload is modelled as an explicit state machine (`TransferMachine`)
whose transition function consumes `TransferEvent`s and returns the next
frame to write. `TransferEngine` owns the I/O: it writes frames to the
session, waits for notifications with the timeout of the current phase and
feeds the resulting events back into the machine.

Phases:
    IDLE -> NEGOTIATING -> SENDING -> AWAITING_ACK -> SENDING -> ...
         -> FINALIZING -> COMPLETE
    ABORTED is reachable from every non-terminal phase.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from bleak.exc import BleakError

from .exceptions import (
    BLEDisconnectedError,
    BLETimeoutError,
    Cancelled,
    ChunkRetriesExhausted,
    ConnectionLost,
    FinalizeFailed,
    HandshakeRejected,
    HandshakeTimeout,
    InvalidResponseError,
    MtuTooSmall,
    TransferError,
)
from .models.transfer import (
    FailureReason,
    Packet,
    TransferPhase,
    TransferResult,
    TransferState,
)
from .protocol import (
    CHUNK_SIZE,
    Notification,
    NotificationKind,
    build_packet,
    build_transfer_commit_command,
    build_transfer_start_command,
    checksum,
    frame_size,
    link_fits_chunk,
    parse_notification,
    validate_payload,
)

if TYPE_CHECKING:
    from .transport import Session

_LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class TransferConfig:
    """Tunable transfer parameters.

    Attributes:
        chunk_size: Data bytes per chunk; the watch numbers chunks in these units
        max_retries: Retransmissions allowed per chunk before giving up
        handshake_timeout: Seconds to wait for the first chunk request
        ack_timeout: Seconds to wait for each chunk acknowledgment
        finalize_timeout: Seconds to wait for the commit write to be confirmed
        chunk_trailer: Append a CRC-32 trailer to every chunk
        verify_device_checksum: Fail when the digest reported by the watch differs from ours
    """

    chunk_size: int = CHUNK_SIZE
    max_retries: int = 3
    handshake_timeout: float = 10.0
    ack_timeout: float = 5.0
    finalize_timeout: float = 10.0
    chunk_trailer: bool = False
    verify_device_checksum: bool = False


class EventKind(Enum):
    """Inputs to the transfer state machine."""

    CHUNK_REQUEST = "chunk_request"
    TRANSFER_COMPLETE = "transfer_complete"
    OTHER = "other"
    TIMEOUT = "timeout"
    WRITE_FAILED = "write_failed"
    COMMIT_ACK = "commit_ack"
    COMMIT_FAILED = "commit_failed"
    DISCONNECTED = "disconnected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransferEvent:
    """One input to the state machine.

    Attributes:
        kind: Event type
        value: Chunk number or device digest, for notification events
        detail: Human readable context for logs and errors
    """

    kind: EventKind
    value: int | None = None
    detail: str = ""

    @classmethod
    def from_notification(cls, notification: Notification) -> TransferEvent:
        if notification.kind is NotificationKind.CHUNK_REQUEST:
            return cls(EventKind.CHUNK_REQUEST, notification.value)
        if notification.kind is NotificationKind.TRANSFER_COMPLETE:
            return cls(EventKind.TRANSFER_COMPLETE, notification.value)
        return cls(EventKind.OTHER, detail=notification.raw.hex())


class Channel(Enum):
    """Characteristic a frame is written to."""

    CONTROL = "control"
    DATA = "data"


@dataclass(frozen=True)
class Outbound:
    """Frame the driver must write next."""

    channel: Channel
    frame: bytes
    packet: Packet | None = None
    response: bool = False


_FAILURE_ERRORS: dict[FailureReason, type[TransferError]] = {
    FailureReason.HANDSHAKE_REJECTED: HandshakeRejected,
    FailureReason.HANDSHAKE_TIMEOUT: HandshakeTimeout,
    FailureReason.CHUNK_RETRIES_EXHAUSTED: ChunkRetriesExhausted,
    FailureReason.FINALIZE_FAILED: FinalizeFailed,
    FailureReason.CONNECTION_LOST: ConnectionLost,
    FailureReason.CANCELLED: Cancelled,
}


class TransferMachine:
    """Pure protocol state machine for one upload.

    Holds no I/O: `begin()` and `handle()` return the frame to write, or
    None when the machine is waiting or finished.
    """

    def __init__(
            self,
            data: bytes,
            chunk_size: int,
            max_retries: int = 3,
            chunk_trailer: bool = False,
            verify_device_checksum: bool = False,
    ):
        """Prepare a transfer.

        Args:
            data: Complete watch face file
            chunk_size: Payload bytes per chunk
            max_retries: Retransmissions allowed per chunk
            chunk_trailer: Append a CRC-32 trailer to each chunk
            verify_device_checksum: Compare the digest reported at completion

        Raises:
            EmptyFile: If data is empty
            FileTooLarge: If data exceeds the protocol limit
        """
        validate_payload(data, chunk_size)
        self._data = bytes(data)
        self.max_retries = max_retries
        self.chunk_trailer = chunk_trailer
        self.verify_device_checksum = verify_device_checksum
        self.checksum = checksum(self._data)
        self.state = TransferState(total=len(self._data), chunk_size=chunk_size)
        self.packet: Packet | None = None

    @property
    def phase(self) -> TransferPhase:
        return self.state.phase

    @property
    def done(self) -> bool:
        return self.state.phase.is_terminal

    def _enter(self, phase: TransferPhase) -> None:
        self.state.phase = phase
        self.state.history.append(phase)

    def begin(self) -> Outbound:
        """Leave IDLE and announce the transfer."""
        if self.state.phase is not TransferPhase.IDLE:
            raise RuntimeError(f"Transfer already started ({self.state.phase.value})")
        self._enter(TransferPhase.NEGOTIATING)
        return Outbound(Channel.CONTROL, build_transfer_start_command(self.state.total))

    def handle(self, event: TransferEvent) -> Outbound | None:
        """Apply one event.

        Returns:
            Next frame to write, or None to keep waiting (or when finished)
        """
        if self.done:
            raise RuntimeError(f"Transfer already {self.state.phase.value}")

        if event.kind is EventKind.DISCONNECTED:
            return self._abort(FailureReason.CONNECTION_LOST, "Device disconnected")
        if event.kind is EventKind.CANCELLED:
            return self._abort(FailureReason.CANCELLED, "Upload cancelled")

        if self.state.phase is TransferPhase.NEGOTIATING:
            return self._on_negotiating(event)
        if self.state.phase is TransferPhase.AWAITING_ACK:
            return self._on_awaiting_ack(event)
        if self.state.phase is TransferPhase.FINALIZING:
            return self._on_finalizing(event)
        raise RuntimeError(f"No events expected in phase {self.state.phase.value}")

    def _on_negotiating(self, event: TransferEvent) -> Outbound | None:
        if event.kind is EventKind.CHUNK_REQUEST and event.value == 0:
            _LOGGER.debug("Handshake accepted")
            return self._send_chunk()
        if event.kind in (EventKind.TIMEOUT, EventKind.WRITE_FAILED):
            return self._abort(
                FailureReason.HANDSHAKE_TIMEOUT,
                event.detail or "No response to start of transfer",
            )
        if event.kind in (EventKind.CHUNK_REQUEST, EventKind.TRANSFER_COMPLETE):
            return self._abort(
                FailureReason.HANDSHAKE_REJECTED,
                f"Watch answered start of transfer with {event.kind.value} {event.value}",
            )
        _LOGGER.warning("Unexpected data from watch during handshake: %s", event.detail)
        return None

    def _on_awaiting_ack(self, event: TransferEvent) -> Outbound | None:
        packet = self.packet
        assert packet is not None
        is_last = packet.end >= self.state.total

        if event.kind is EventKind.CHUNK_REQUEST:
            if event.value == packet.sequence + 1 and not is_last:
                self._acknowledge(packet)
                return self._send_chunk()
            if event.value == packet.sequence:
                return self._retry(f"Watch requested chunk #{packet.sequence} again")
            _LOGGER.warning(
                "Ignoring request for chunk #%s while awaiting ack of #%d",
                event.value,
                packet.sequence,
            )
            return None

        if event.kind is EventKind.TRANSFER_COMPLETE:
            if not is_last:
                _LOGGER.warning(
                    "Ignoring early completion at chunk #%d (%d/%d bytes)",
                    packet.sequence,
                    packet.end,
                    self.state.total,
                )
                return None
            self._acknowledge(packet)
            self.state.device_checksum = event.value
            _LOGGER.debug("All data received by watch (digest 0x%08x)", event.value or 0)
            if self.verify_device_checksum and event.value != self.checksum:
                return self._abort(
                    FailureReason.FINALIZE_FAILED,
                    f"Checksum mismatch: watch reported 0x{event.value or 0:08x}, "
                    f"expected 0x{self.checksum:08x}",
                )
            self._enter(TransferPhase.FINALIZING)
            return Outbound(Channel.CONTROL, build_transfer_commit_command(), response=True)

        if event.kind in (EventKind.TIMEOUT, EventKind.WRITE_FAILED):
            return self._retry(event.detail or f"Timed out waiting for ack of chunk #{packet.sequence}")

        _LOGGER.warning("Unexpected data from watch: %s", event.detail)
        return None

    def _on_finalizing(self, event: TransferEvent) -> Outbound | None:
        if event.kind is EventKind.COMMIT_ACK:
            self._enter(TransferPhase.COMPLETE)
            return None
        if event.kind in (EventKind.COMMIT_FAILED, EventKind.TIMEOUT, EventKind.WRITE_FAILED):
            return self._abort(FailureReason.FINALIZE_FAILED, event.detail or "Commit not confirmed")
        _LOGGER.debug("Ignoring %s while finalizing", event.kind.value)
        return None

    def _acknowledge(self, packet: Packet) -> None:
        # Offset only moves forward, and only here
        self.state.offset = packet.end
        self.state.retries = 0
        self.state.awaiting_ack = False

    def _send_chunk(self) -> Outbound:
        self.packet = build_packet(
            self._data,
            self.state.offset,
            self.state.chunk_size,
            trailer=self.chunk_trailer,
        )
        return self._transmit(self.packet)

    def _transmit(self, packet: Packet) -> Outbound:
        self._enter(TransferPhase.SENDING)
        self.state.chunks_sent += 1
        self.state.awaiting_ack = True
        self._enter(TransferPhase.AWAITING_ACK)
        return Outbound(Channel.DATA, packet.to_bytes(), packet)

    def _retry(self, reason: str) -> Outbound | None:
        packet = self.packet
        assert packet is not None
        if self.state.retries >= self.max_retries:
            return self._abort(
                FailureReason.CHUNK_RETRIES_EXHAUSTED,
                f"{reason}; gave up on chunk #{packet.sequence} after {self.state.retries} retries",
            )
        self.state.retries += 1
        self.state.retransmissions += 1
        _LOGGER.warning(
            "%s; retransmitting (retry %d/%d)", reason, self.state.retries, self.max_retries
        )
        return self._transmit(packet)

    def _abort(self, reason: FailureReason, detail: str) -> None:
        self.state.failure = reason
        self.state.detail = detail
        self.state.awaiting_ack = False
        self._enter(TransferPhase.ABORTED)
        _LOGGER.debug("Transfer aborted (%s): %s", reason.value, detail)
        return None

    def error(self) -> TransferError:
        """Exception describing why the transfer aborted."""
        if self.state.failure is None:
            raise RuntimeError("Transfer has not failed")
        return _FAILURE_ERRORS[self.state.failure](
            self.state.detail,
            offset=self.state.offset,
            total=self.state.total,
            retries=self.state.retries,
        )


class TransferEngine:
    """Drives a `TransferMachine` over a live session.

    Usage:
        async with await connect(descriptor) as session:
            result = await TransferEngine().upload(session, data)
    """

    def __init__(self, config: TransferConfig | None = None):
        self.config = config or TransferConfig()

    def _wait_timeout(self, phase: TransferPhase) -> float:
        if phase is TransferPhase.NEGOTIATING:
            return self.config.handshake_timeout
        return self.config.ack_timeout

    async def upload(
            self,
            session: Session,
            data: bytes,
            on_progress: ProgressCallback | None = None,
            cancel: asyncio.Event | None = None,
    ) -> TransferResult:
        """Upload a watch face file.

        Args:
            session: Connected session, used exclusively for the duration
            data: Complete watch face file
            on_progress: Called with (acknowledged bytes, total) after each ack
            cancel: Set to abort the upload at the next suspension point

        Returns:
            TransferResult summary

        Raises:
            EmptyFile, FileTooLarge: If data cannot be transferred
            TransferError: Subclass describing why the upload aborted
            MtuTooSmall: If the link MTU cannot carry a full chunk frame
            SessionBusyError: If the session is already in use
        """
        chunk_size = self.config.chunk_size
        machine = TransferMachine(
            data,
            chunk_size,
            max_retries=self.config.max_retries,
            chunk_trailer=self.config.chunk_trailer,
            verify_device_checksum=self.config.verify_device_checksum,
        )

        mtu_size = session.mtu_size
        if not link_fits_chunk(chunk_size, mtu_size, trailer=self.config.chunk_trailer):
            raise MtuTooSmall(
                f"Link MTU {mtu_size} cannot carry {frame_size(chunk_size, self.config.chunk_trailer)}"
                "-byte chunk frames; the watch requires full chunks",
                total=machine.state.total,
            )

        _LOGGER.info(
            "Uploading %d bytes to %s (chunk size %d)",
            machine.state.total,
            session.address,
            chunk_size,
        )

        started = time.monotonic()
        async with session.claim():
            session.clear_notifications()
            try:
                await self._run(session, machine, on_progress, cancel)
            except asyncio.CancelledError:
                if not machine.done:
                    machine.handle(TransferEvent(EventKind.CANCELLED))
                raise

        if machine.phase is TransferPhase.ABORTED:
            error = machine.error()
            _LOGGER.error("Upload failed: %s (%s)", error, error.progress)
            raise error

        result = TransferResult(
            total=machine.state.total,
            chunks_sent=machine.state.chunks_sent,
            retransmissions=machine.state.retransmissions,
            checksum=machine.checksum,
            device_checksum=machine.state.device_checksum,
            elapsed=time.monotonic() - started,
        )
        _LOGGER.info(
            "Upload complete: %d bytes in %.1fs (%d retransmissions)",
            result.total,
            result.elapsed,
            result.retransmissions,
        )
        return result

    async def _run(
            self,
            session: Session,
            machine: TransferMachine,
            on_progress: ProgressCallback | None,
            cancel: asyncio.Event | None,
    ) -> None:
        loop = asyncio.get_running_loop()
        outbound: Outbound | None = machine.begin()
        deadline = loop.time()

        while not machine.done:
            if outbound is not None:
                event = await self._write(session, outbound)
                if event is not None:
                    outbound = machine.handle(event)
                    continue
                deadline = loop.time() + self._wait_timeout(machine.phase)
                outbound = None

            offset = machine.state.offset
            event = await self._next_event(session, deadline - loop.time(), cancel)
            outbound = machine.handle(event)

            if on_progress is not None and machine.state.offset != offset:
                on_progress(machine.state.offset, machine.state.total)

    async def _write(self, session: Session, outbound: Outbound) -> TransferEvent | None:
        """Write one frame.

        Returns:
            Event to feed back into the machine, or None to wait for a notification
        """
        if outbound.response:
            try:
                await asyncio.wait_for(
                    session.write_control(outbound.frame, response=True),
                    timeout=self.config.finalize_timeout,
                )
            except asyncio.TimeoutError:
                return TransferEvent(
                    EventKind.COMMIT_FAILED,
                    detail=f"Commit not confirmed within {self.config.finalize_timeout}s",
                )
            except BLEDisconnectedError as e:
                return TransferEvent(EventKind.DISCONNECTED, detail=str(e))
            except BleakError as e:
                return TransferEvent(EventKind.COMMIT_FAILED, detail=f"Commit write failed: {e}")
            return TransferEvent(EventKind.COMMIT_ACK)

        try:
            if outbound.channel is Channel.DATA:
                packet = outbound.packet
                if packet is not None:
                    _LOGGER.debug(
                        "Sending chunk #%d (%d bytes at offset %d)",
                        packet.sequence,
                        packet.length,
                        packet.offset,
                    )
                await session.write_data(outbound.frame)
            else:
                await session.write_control(outbound.frame)
        except BLEDisconnectedError as e:
            return TransferEvent(EventKind.DISCONNECTED, detail=str(e))
        except BleakError as e:
            return TransferEvent(EventKind.WRITE_FAILED, detail=f"Write failed: {e}")
        return None

    async def _next_event(
            self,
            session: Session,
            timeout: float,
            cancel: asyncio.Event | None,
    ) -> TransferEvent:
        """Suspend until a notification, timeout, disconnect or cancellation."""
        if cancel is not None and cancel.is_set():
            return TransferEvent(EventKind.CANCELLED)

        try:
            data = await self._read(session, max(timeout, 0.0), cancel)
        except BLETimeoutError as e:
            return TransferEvent(EventKind.TIMEOUT, detail=str(e))
        except BLEDisconnectedError as e:
            return TransferEvent(EventKind.DISCONNECTED, detail=str(e))

        if data is None:
            return TransferEvent(EventKind.CANCELLED)

        try:
            notification = parse_notification(data)
        except InvalidResponseError as e:
            return TransferEvent(EventKind.OTHER, detail=f"{data.hex()} ({e})")
        return TransferEvent.from_notification(notification)

    @staticmethod
    async def _read(session: Session, timeout: float, cancel: asyncio.Event | None) -> bytes | None:
        """Read one notification, or return None if cancel is set first."""
        if cancel is None:
            return await session.read_notification(timeout)

        read_task = asyncio.ensure_future(session.read_notification(timeout))
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {read_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (read_task, cancel_task):
                if not task.done():
                    task.cancel()

        if read_task in done:
            return read_task.result()
        return None
