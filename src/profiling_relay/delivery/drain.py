"""
Drain buffered traces to the collector

A drain pass reads the buffer chunk by chunk, submits each record in order and
deletes only what the sender confirmed. When a submission fails the confirmed
prefix of the current chunk is deleted, the pass stops and the failure is
reported; the next pass retries the rest. A crash between submission and
deletion resends at most one chunk, so delivery is at-least-once.

Only one drain pass may run per buffer at a time. Callers (a scheduler, the
CLI) are responsible for that guard.
"""

from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..logger import get_logger, log_with_context
from ..storage.base import RecordId, TraceBuffer, validate_chunk_size
from .sender import Sender

DEFAULT_CHUNK_SIZE = 100


@dataclass
class ChunkReport:
    """What happened to one chunk"""

    count: int
    first_id: Optional[RecordId]
    last_id: Optional[RecordId]
    complete: bool = True


@dataclass
class DrainReport:
    """Outcome of one drain pass"""

    chunks: List[ChunkReport] = field(default_factory=list)
    error: Optional[BaseException] = None
    failed_id: Optional[RecordId] = None
    salvaged: int = 0
    unsent_at_start: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def synced(self) -> int:
        """Records confirmed and deleted during the pass"""
        return sum(chunk.count for chunk in self.chunks)

    @property
    def first_id(self) -> Optional[RecordId]:
        for chunk in self.chunks:
            if chunk.count:
                return chunk.first_id
        return None

    @property
    def last_id(self) -> Optional[RecordId]:
        for chunk in reversed(self.chunks):
            if chunk.count:
                return chunk.last_id
        return None


class DrainEngine:
    """Moves traces from a buffer to a sender in bounded chunks"""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, use_transaction: bool = True):
        self.chunk_size = validate_chunk_size(chunk_size)
        self.use_transaction = use_transaction
        self.logger = get_logger("drain")

    def drain(
        self,
        buffer: TraceBuffer,
        sender: Sender,
        on_chunk: Optional[Callable[[ChunkReport], None]] = None,
    ) -> DrainReport:
        """Run one drain pass and report how far it got"""
        scope = buffer.transaction() if self.use_transaction else nullcontext(buffer)
        with scope:
            return self._drain(buffer, sender, on_chunk)

    def _drain(
        self,
        buffer: TraceBuffer,
        sender: Sender,
        on_chunk: Optional[Callable[[ChunkReport], None]],
    ) -> DrainReport:
        report = DrainReport(unsent_at_start=buffer.count_unsent())
        if report.unsent_at_start == 0:
            log_with_context(self.logger, "info", "No unsent traces", backend=buffer.kind)
            return report

        log_with_context(
            self.logger,
            "info",
            "Draining traces",
            backend=buffer.kind,
            unsent=report.unsent_at_start,
            chunk_size=self.chunk_size,
        )

        for chunk in buffer.read_chunk(self.chunk_size):
            if not chunk:
                continue
            confirmed: List[RecordId] = []

            for record in chunk:
                try:
                    sender.submit(record.payload)
                except Exception as exc:
                    if confirmed:
                        buffer.delete_many(confirmed)
                        report.chunks.append(
                            ChunkReport(len(confirmed), confirmed[0], confirmed[-1], complete=False)
                        )
                    report.error = exc
                    report.failed_id = record.id
                    report.salvaged = len(confirmed)
                    log_with_context(
                        self.logger,
                        "error",
                        "Trace submission failed, stopping drain",
                        backend=buffer.kind,
                        trace_id=record.id,
                        salvaged=len(confirmed),
                        synced=report.synced,
                        error=str(exc),
                    )
                    return report
                confirmed.append(record.id)

            buffer.delete_many(confirmed)
            chunk_report = ChunkReport(len(confirmed), confirmed[0], confirmed[-1])
            report.chunks.append(chunk_report)
            log_with_context(
                self.logger,
                "info",
                "Synced chunk",
                backend=buffer.kind,
                count=chunk_report.count,
                first_id=chunk_report.first_id,
                last_id=chunk_report.last_id,
            )
            if on_chunk is not None:
                on_chunk(chunk_report)

        return report


def drain(
    buffer: TraceBuffer,
    sender: Sender,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_chunk: Optional[Callable[[ChunkReport], None]] = None,
    use_transaction: bool = True,
) -> DrainReport:
    """Functional form of ``DrainEngine.drain``"""
    engine = DrainEngine(chunk_size=chunk_size, use_transaction=use_transaction)
    return engine.drain(buffer, sender, on_chunk=on_chunk)
