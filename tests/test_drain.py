"""
Tests for the chunked drain
"""

from collections import Counter
from unittest.mock import MagicMock

import pytest

from profiling_relay.delivery import ChunkReport, DrainEngine, DrainReport, drain
from profiling_relay.errors import DeliveryError, StorageError


def fill(buffer, count):
    return [buffer.store(b"trace-%d" % i) for i in range(count)]


class TestDrain:
    def test_empty_buffer(self, buffer, sender):
        report = drain(buffer, sender)
        assert report.ok
        assert report.synced == 0
        assert report.unsent_at_start == 0
        assert report.chunks == []
        assert sender.calls == 0

    def test_drains_everything_in_chunks(self, buffer, sender):
        fill(buffer, 10)
        chunks = []
        report = drain(buffer, sender, chunk_size=3, on_chunk=chunks.append)

        assert report.ok
        assert [c.count for c in report.chunks] == [3, 3, 3, 1]
        assert [c.count for c in chunks] == [3, 3, 3, 1]
        assert report.synced == 10
        assert buffer.count_unsent() == 0
        assert sorted(sender.sent) == sorted(b"trace-%d" % i for i in range(10))

    def test_report_id_range(self, database_buffer, sender):
        ids = fill(database_buffer, 5)
        report = drain(database_buffer, sender, chunk_size=2)
        assert report.first_id == ids[0]
        assert report.last_id == ids[-1]
        assert report.chunks[0] == ChunkReport(2, ids[0], ids[1])

    def test_mid_chunk_failure_keeps_unconfirmed(self, buffer, make_sender):
        fill(buffer, 10)
        failing = make_sender(fail_on={6})
        report = drain(buffer, failing, chunk_size=10)

        assert not report.ok
        assert isinstance(report.error, DeliveryError)
        assert report.salvaged == 5
        assert report.synced == 5
        assert report.chunks[-1].complete is False
        assert buffer.count_unsent() == 5
        assert len(failing.sent) == 5

    def test_redrain_after_failure_delivers_rest(self, buffer, make_sender):
        fill(buffer, 10)
        first = make_sender(fail_on={6})
        drain(buffer, first, chunk_size=10)

        second = make_sender()
        report = drain(buffer, second, chunk_size=10)
        assert report.ok
        assert report.synced == 5
        assert buffer.count_unsent() == 0

        deliveries = Counter(first.sent + second.sent)
        assert set(deliveries) == {b"trace-%d" % i for i in range(10)}
        assert max(deliveries.values()) <= 2

    def test_failure_on_first_record_deletes_nothing(self, buffer, make_sender):
        fill(buffer, 4)
        failing = make_sender(fail_on={1})
        report = drain(buffer, failing, chunk_size=2)

        assert not report.ok
        assert report.salvaged == 0
        assert report.chunks == []
        assert buffer.count_unsent() == 4

    def test_failure_in_later_chunk_keeps_earlier_chunks_deleted(self, buffer, make_sender):
        fill(buffer, 6)
        failing = make_sender(fail_on={4})
        report = drain(buffer, failing, chunk_size=3)

        assert [c.count for c in report.chunks] == [3]
        assert report.synced == 3
        assert report.salvaged == 0
        assert buffer.count_unsent() == 3

    def test_any_exception_from_sender_is_reported(self, buffer):
        fill(buffer, 2)
        sender = MagicMock()
        sender.submit.side_effect = [None, TimeoutError("timed out")]
        report = drain(buffer, sender, chunk_size=10)

        assert isinstance(report.error, TimeoutError)
        assert report.failed_id is not None
        assert buffer.count_unsent() == 1

    def test_repeated_drains_reach_fixed_point(self, buffer, make_sender):
        fill(buffer, 9)
        for failure in ({2}, {3}, {1}, set()):
            drain(buffer, make_sender(fail_on=failure), chunk_size=4)
        assert buffer.count_unsent() == 0

    def test_storage_errors_propagate(self, sender):
        buffer = MagicMock()
        buffer.count_unsent.side_effect = StorageError("disk gone")
        with pytest.raises(StorageError):
            DrainEngine(use_transaction=False).drain(buffer, sender)


class TestDrainEngine:
    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            DrainEngine(chunk_size=0)

    def test_runs_inside_transaction(self, database_buffer, sender):
        fill(database_buffer, 3)
        database_buffer.transaction = MagicMock(wraps=database_buffer.transaction)
        DrainEngine(chunk_size=2).drain(database_buffer, sender)
        database_buffer.transaction.assert_called_once_with()
        assert database_buffer.count_unsent() == 0

    def test_transaction_optional(self, database_buffer, sender):
        fill(database_buffer, 3)
        database_buffer.transaction = MagicMock(wraps=database_buffer.transaction)
        DrainEngine(chunk_size=2, use_transaction=False).drain(database_buffer, sender)
        database_buffer.transaction.assert_not_called()
        assert database_buffer.count_unsent() == 0

    def test_storage_failure_keeps_earlier_chunks_deleted(self, database_buffer, sender):
        fill(database_buffer, 9)
        real_delete = database_buffer.delete_many
        deletes = []

        def delete_many(ids):
            deletes.append(list(ids))
            if len(deletes) == 3:
                raise StorageError("disk full")
            real_delete(ids)

        database_buffer.delete_many = delete_many
        with pytest.raises(StorageError):
            DrainEngine(chunk_size=3).drain(database_buffer, sender)

        assert len(sender.sent) == 9
        assert database_buffer.count_unsent() == 3

    def test_interrupt_between_chunks_keeps_delivered_chunks_deleted(
        self, database_buffer, sender
    ):
        fill(database_buffer, 9)
        seen = []

        def on_chunk(chunk):
            seen.append(chunk)
            if len(seen) == 2:
                raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            DrainEngine(chunk_size=3).drain(database_buffer, sender, on_chunk=on_chunk)

        assert len(sender.sent) == 6
        assert database_buffer.count_unsent() == 3

    def test_failed_pass_still_commits_salvaged_deletes(self, database_buffer, make_sender):
        fill(database_buffer, 4)
        DrainEngine(chunk_size=4).drain(database_buffer, make_sender(fail_on={3}))
        assert database_buffer.count_unsent() == 2


class TestDrainReport:
    def test_empty_report(self):
        report = DrainReport()
        assert report.ok
        assert report.synced == 0
        assert report.first_id is None
        assert report.last_id is None

    def test_id_range_spans_chunks(self):
        report = DrainReport(chunks=[ChunkReport(2, 1, 2), ChunkReport(1, 3, 3)])
        assert report.first_id == 1
        assert report.last_id == 3
        assert report.synced == 3
