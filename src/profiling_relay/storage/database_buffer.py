"""
Table-backed trace buffer built on SQLAlchemy Core

Schema (one row per trace)::

    id          INTEGER PRIMARY KEY AUTOINCREMENT
    data        TEXT      base64 encoded payload
    created_at  TIMESTAMP
    updated_at  TIMESTAMP

Ids come from the autoincrement key and are never reused.
"""

import re
import threading
from contextlib import contextmanager
from datetime import timezone
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..config import DatabaseBufferConfig
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

TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Keeps IN (...) lists under SQLite's bind parameter limit
DELETE_BATCH_SIZE = 500


def build_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("data", Text, nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class DatabaseTraceBuffer(TraceBuffer):
    """Trace buffer storing one row per record"""

    kind = "database"

    def __init__(
        self,
        config: Optional[DatabaseBufferConfig] = None,
        engine: Optional[Engine] = None,
    ):
        self.config = config or DatabaseBufferConfig()
        table_name = self.config.table

        if not isinstance(table_name, str) or not TABLE_NAME_RE.match(table_name):
            raise ConfigurationError(
                f"Database buffer `table` must be a valid table name, got {table_name!r}"
            )

        if engine is None:
            url = self.config.url
            if not isinstance(url, str) or not url:
                raise ConfigurationError(
                    f"Database buffer `url` must be a non-empty string, got {url!r}"
                )
            engine_kwargs = {"echo": self.config.echo}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise each checkout sees a new empty db
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            try:
                engine = create_engine(url, **engine_kwargs)
            except ArgumentError as exc:
                raise ConfigurationError(f"Invalid database buffer url {url!r}: {exc}") from exc
            self._owns_engine = True
        else:
            self._owns_engine = False

        self.engine = engine
        self.metadata = MetaData()
        self.table = build_table(table_name, self.metadata)
        self.logger = get_logger("storage.database")
        self._local = threading.local()

        try:
            self.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot create trace table {table_name!r}: {exc}") from exc

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        """Use the open drain transaction on this thread, or a short one"""
        active = getattr(self._local, "connection", None)
        if active is not None:
            yield active
            return
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StorageError(f"Trace table operation failed: {exc}") from exc

    @contextmanager
    def transaction(self):
        """Run the enclosed operations on one connection in one transaction

        The transaction is committed however the block exits, including an
        exception or interrupt part way through a drain pass. Deletes of
        chunks already delivered are kept, so only the chunk in flight can
        be sent again.
        """
        if getattr(self._local, "connection", None) is not None:
            yield self
            return
        try:
            conn = self.engine.connect()
            trans = conn.begin()
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot open trace table transaction: {exc}") from exc

        self._local.connection = conn
        try:
            yield self
        finally:
            self._local.connection = None
            try:
                if trans.is_active:
                    trans.commit()
            except SQLAlchemyError as exc:
                raise StorageError(f"Trace table transaction failed: {exc}") from exc
            finally:
                conn.close()

    def _execute(self, statement, fetch=None):
        """Execute ``statement``; ``fetch`` reads the result before the connection closes"""
        with self._connection() as conn:
            try:
                result = conn.execute(statement)
                return fetch(result) if fetch is not None else None
            except SQLAlchemyError as exc:
                raise StorageError(f"Trace table operation failed: {exc}") from exc

    def store(self, payload: bytes) -> RecordId:
        payload = ensure_bytes(payload)
        now = utcnow()
        statement = insert(self.table).values(
            data=encode_payload(payload), created_at=now, updated_at=now
        )
        with self._connection() as conn:
            try:
                result = conn.execute(statement)
            except SQLAlchemyError as exc:
                raise StorageError(f"Failed to store trace: {exc}") from exc
            record_id = int(result.inserted_primary_key[0])

        log_with_context(
            self.logger, "debug", "Stored trace", trace_id=record_id, size=len(payload)
        )
        return record_id

    def count_unsent(self) -> int:
        statement = select(func.count()).select_from(self.table)
        return int(self._execute(statement, lambda result: result.scalar_one()))

    def _to_record(self, row) -> TraceRecord:
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return TraceRecord(
            id=int(row.id), payload=decode_payload(row.data), created_at=created_at
        )

    def read_chunk(self, max_size: int) -> Iterator[List[TraceRecord]]:
        validate_chunk_size(max_size)
        last_id = 0
        columns = (self.table.c.id, self.table.c.data, self.table.c.created_at)

        while True:
            statement = (
                select(*columns)
                .where(self.table.c.id > last_id)
                .order_by(self.table.c.id)
                .limit(max_size)
            )
            rows = self._execute(statement, lambda result: result.all())
            if not rows:
                break
            last_id = rows[-1].id
            yield [self._to_record(row) for row in rows]

    def delete_many(self, ids: Iterable[RecordId]) -> None:
        numeric_ids = []
        for record_id in ids:
            try:
                numeric_ids.append(int(record_id))
            except (TypeError, ValueError):
                continue

        for start in range(0, len(numeric_ids), DELETE_BATCH_SIZE):
            batch = numeric_ids[start : start + DELETE_BATCH_SIZE]
            self._execute(delete(self.table).where(self.table.c.id.in_(batch)))

    def clear(self) -> None:
        self._execute(delete(self.table))

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()
