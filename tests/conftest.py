"""
Shared fixtures for buffer and drain tests
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from profiling_relay.config import DatabaseBufferConfig, FileBufferConfig
from profiling_relay.errors import DeliveryError
from profiling_relay.storage import DatabaseTraceBuffer, FileTraceBuffer


class RecordingSender:
    """Sender double that records payloads and can fail on the n-th call"""

    def __init__(self, fail_on=None):
        self.fail_on = set(fail_on or ())
        self.calls = 0
        self.sent = []

    def submit(self, payload: bytes) -> None:
        self.calls += 1
        if self.calls in self.fail_on:
            raise DeliveryError(f"collector unavailable on call {self.calls}")
        self.sent.append(payload)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def file_buffer(tmp_path):
    return FileTraceBuffer(FileBufferConfig(directory=str(tmp_path / "traces")))


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def database_buffer(sqlite_engine):
    return DatabaseTraceBuffer(DatabaseBufferConfig(table="traces"), engine=sqlite_engine)


@pytest.fixture(params=["file", "database"])
def buffer(request):
    return request.getfixturevalue(f"{request.param}_buffer")


@pytest.fixture
def make_sender():
    return RecordingSender
