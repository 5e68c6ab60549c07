"""
Base classes for trace buffers

Concurrency
-----------
``store`` is safe to call from many threads or processes at once: every call
gets its own id. ``clear`` is an administrative operation and races with
concurrent ``store`` and drain passes; it takes no locks.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Union

from ..errors import StorageError

RecordId = Union[int, str]


@dataclass(frozen=True)
class TraceRecord:
    """One captured trace, as stored in a buffer"""

    id: RecordId
    payload: bytes
    created_at: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def encode_payload(payload: bytes) -> str:
    """Encode an opaque payload for text columns and JSON envelopes"""
    return base64.b64encode(payload).decode("ascii")


def decode_payload(data: str) -> bytes:
    try:
        return base64.b64decode(data.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise StorageError(f"Stored trace data is not valid base64: {exc}") from exc


def ensure_bytes(payload: Union[bytes, bytearray, memoryview, str]) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, (bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    raise TypeError(f"Trace payload must be bytes, got {type(payload).__name__}")


def validate_chunk_size(max_size: int) -> int:
    if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1:
        raise ValueError(f"Chunk size must be a positive integer, got {max_size!r}")
    return max_size


class TraceBuffer(ABC):
    """Durable store of captured traces awaiting delivery"""

    kind: str = "abstract"

    @abstractmethod
    def store(self, payload: bytes) -> RecordId:
        """Persist one payload and return its id"""

    @abstractmethod
    def count_unsent(self) -> int:
        """Number of records currently stored"""

    @abstractmethod
    def read_chunk(self, max_size: int) -> Iterator[List[TraceRecord]]:
        """Yield the stored records in chunks of at most ``max_size``"""

    @abstractmethod
    def delete_many(self, ids: Iterable[RecordId]) -> None:
        """Delete records by id; unknown ids are ignored"""

    @abstractmethod
    def clear(self) -> None:
        """Delete every stored record"""

    @contextmanager
    def transaction(self):
        """Group a drain pass; backends without transactions do nothing"""
        yield self

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
