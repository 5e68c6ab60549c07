"""
File-backed trace buffer

Each trace lives in its own file, ``<uuid4 hex><suffix>``, inside the
configured directory. The file holds a JSON envelope::

    {"id": "...", "data": "<base64 payload>", "created_at": "<ISO 8601>"}

Writes go to a hidden temporary file that is fsynced and then renamed into
place, so a reader never sees a partially written record.
"""

import json
import os
import uuid
from contextlib import suppress
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from ..config import FileBufferConfig
from ..errors import ConfigurationError, StorageError
from ..logger import get_logger, log_with_context
from .base import (
    RecordId,
    TraceBuffer,
    TraceRecord,
    decode_payload,
    encode_payload,
    ensure_bytes,
    utcnow,
    validate_chunk_size,
)

TEMP_PREFIX = "."
TEMP_SUFFIX = ".partial"


class FileTraceBuffer(TraceBuffer):
    """Trace buffer storing one JSON file per record"""

    kind = "file"

    def __init__(self, config: Optional[FileBufferConfig] = None):
        self.config = config or FileBufferConfig()
        directory = self.config.directory
        suffix = self.config.suffix

        if not isinstance(directory, (str, os.PathLike)) or not os.fspath(directory):
            raise ConfigurationError(
                f"File buffer `directory` must be a non-empty path, got {directory!r}"
            )
        if not isinstance(suffix, str) or not suffix:
            raise ConfigurationError(
                f"File buffer `suffix` must be a non-empty string, got {suffix!r}"
            )
        if suffix.endswith(TEMP_SUFFIX):
            raise ConfigurationError(f"File buffer `suffix` may not end with {TEMP_SUFFIX!r}")

        self.directory = Path(directory)
        self.suffix = suffix
        self.logger = get_logger("storage.file")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create trace directory {self.directory}: {exc}") from exc

    def _path_for(self, record_id: str) -> Path:
        return self.directory / f"{record_id}{self.suffix}"

    def _is_record_name(self, name: str) -> bool:
        return name.endswith(self.suffix) and not name.startswith(TEMP_PREFIX)

    def _record_id(self, name: str) -> str:
        return name[: -len(self.suffix)]

    def _fsync_directory(self) -> None:
        if not hasattr(os, "O_DIRECTORY"):
            return
        fd = os.open(self.directory, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def store(self, payload: bytes) -> RecordId:
        payload = ensure_bytes(payload)
        record_id = uuid.uuid4().hex
        envelope = {
            "id": record_id,
            "data": encode_payload(payload),
            "created_at": utcnow().isoformat(),
        }
        final_path = self._path_for(record_id)
        temp_path = self.directory / f"{TEMP_PREFIX}{record_id}{self.suffix}{TEMP_SUFFIX}"

        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(envelope, handle, separators=(",", ":"))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, final_path)
        except OSError as exc:
            with suppress(OSError):
                temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to store trace in {self.directory}: {exc}") from exc

        # Record is in place from here on
        try:
            self._fsync_directory()
        except OSError as exc:
            log_with_context(
                self.logger,
                "warning",
                "Failed to sync trace directory",
                directory=str(self.directory),
                trace_id=record_id,
                error=str(exc),
            )

        log_with_context(
            self.logger, "debug", "Stored trace", trace_id=record_id, size=len(payload)
        )
        return record_id

    def _list_records(self) -> List[Tuple[int, str]]:
        """Snapshot of (mtime_ns, name) for every record file, oldest first"""
        entries = []
        try:
            with os.scandir(self.directory) as it:
                for entry in it:
                    if not self._is_record_name(entry.name):
                        continue
                    try:
                        if not entry.is_file():
                            continue
                        entries.append((entry.stat().st_mtime_ns, entry.name))
                    except FileNotFoundError:
                        continue
        except OSError as exc:
            raise StorageError(f"Failed to list traces in {self.directory}: {exc}") from exc
        entries.sort()
        return entries

    def _read_record(self, name: str) -> Optional[TraceRecord]:
        path = self.directory / name
        try:
            with open(path, "r", encoding="utf-8") as handle:
                envelope = json.load(handle)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read trace {path}: {exc}") from exc
        except ValueError as exc:
            raise StorageError(f"Trace file {path} is not valid JSON: {exc}") from exc

        try:
            created_at = datetime.fromisoformat(envelope["created_at"])
            data = envelope["data"]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Trace file {path} has a malformed envelope: {exc}") from exc

        return TraceRecord(
            id=self._record_id(name),
            payload=decode_payload(data),
            created_at=created_at,
        )

    def count_unsent(self) -> int:
        return len(self._list_records())

    def read_chunk(self, max_size: int) -> Iterator[List[TraceRecord]]:
        validate_chunk_size(max_size)
        names = [name for _, name in self._list_records()]

        for start in range(0, len(names), max_size):
            chunk = []
            for name in names[start : start + max_size]:
                record = self._read_record(name)
                # Removed since the listing was taken
                if record is not None:
                    chunk.append(record)
            if chunk:
                yield chunk

    def delete_many(self, ids: Iterable[RecordId]) -> None:
        for record_id in ids:
            record_id = str(record_id)
            if not record_id or os.path.basename(record_id) != record_id:
                continue
            try:
                self._path_for(record_id).unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(f"Failed to delete trace {record_id}: {exc}") from exc

    def clear(self) -> None:
        self.delete_many(self._record_id(name) for _, name in self._list_records())
