"""
Tests for operational_sync.pending_sync.

Verifies that queued writes are replayed in order, removed on success and
kept with an incremented attempt count on failure.
"""

import pytest

from operational_sync import pending_sync, state_store
from pocketbase_api import client as real_pb


@pytest.fixture
def backend(fake_pb, monkeypatch):
    monkeypatch.setattr(pending_sync, "pb", fake_pb)
    return fake_pb


class TestReplay:
    def test_empty_queue(self, backend, state_conn):
        result = pending_sync.replay_pending_operations(None, state_conn)
        assert result == {"total": 0, "synced": 0, "stale": 0, "failed": 0}

    def test_replays_every_operation_type(self, backend, state_conn):
        existing = backend.add(real_pb.FOOTER_DATA, {"parameter_id": "p1", "total": 1})
        doomed = backend.add(real_pb.MATERIAL_USAGE, {"shift": "shift1"})
        state_store.enqueue_operation(state_conn, real_pb.FOOTER_DATA, "create", {"parameter_id": "p2"})
        state_store.enqueue_operation(
            state_conn, real_pb.FOOTER_DATA, "update", {"total": 2}, record_id=existing["id"]
        )
        state_store.enqueue_operation(state_conn, real_pb.MATERIAL_USAGE, "delete", {}, record_id=doomed["id"])

        result = pending_sync.replay_pending_operations(None, state_conn)

        assert result == {"total": 3, "synced": 3, "stale": 0, "failed": 0}
        assert [call[0] for call in backend.writes()] == ["create", "update", "delete"]
        assert backend.rows(real_pb.MATERIAL_USAGE) == []
        assert state_store.count_pending_operations(state_conn) == 0

    def test_failures_stay_queued(self, backend, state_conn):
        backend.fail_writes.add(real_pb.MATERIAL_USAGE)
        state_store.enqueue_operation(state_conn, real_pb.FOOTER_DATA, "create", {"parameter_id": "p2"})
        state_store.enqueue_operation(state_conn, real_pb.MATERIAL_USAGE, "create", {"shift": "shift2"})

        result = pending_sync.replay_pending_operations(None, state_conn)

        assert result == {"total": 2, "synced": 1, "stale": 0, "failed": 1}
        remaining = state_store.get_pending_operations(state_conn)
        assert len(remaining) == 1
        assert remaining[0]["collection"] == real_pb.MATERIAL_USAGE
        assert remaining[0]["attempts"] == 1
        assert "failed" in remaining[0]["last_error"]

    def test_limit(self, backend, state_conn):
        for i in range(3):
            state_store.enqueue_operation(state_conn, real_pb.FOOTER_DATA, "create", {"i": i})

        result = pending_sync.replay_pending_operations(None, state_conn, limit=2)

        assert result["synced"] == 2
        assert state_store.count_pending_operations(state_conn) == 1

    def test_unknown_operation_type(self, backend):
        with pytest.raises(ValueError):
            pending_sync.apply_pending_operation(None, {"collection": "c", "op_type": "merge", "payload": {}})


class TestStaleOperations:
    def test_create_dropped_when_row_exists(self, backend, state_conn):
        backend.add(real_pb.FOOTER_DATA, {"date": "2024-05-01", "parameter_id": "p1", "total": 9})
        state_store.enqueue_operation(
            state_conn,
            real_pb.FOOTER_DATA,
            "create",
            {"date": "2024-05-01", "parameter_id": "p1", "total": 5},
            record_key="2024-05-01|p1",
        )

        result = pending_sync.replay_pending_operations(None, state_conn)

        assert result == {"total": 1, "synced": 0, "stale": 1, "failed": 0}
        assert backend.writes() == []
        assert backend.rows(real_pb.FOOTER_DATA)[0]["total"] == 9
        assert state_store.count_pending_operations(state_conn) == 0

    def test_create_applied_when_row_missing(self, backend, state_conn):
        state_store.enqueue_operation(
            state_conn, real_pb.FOOTER_DATA, "create", {"date": "2024-05-01", "parameter_id": "p1", "total": 5}
        )
        assert pending_sync.replay_pending_operations(None, state_conn)["synced"] == 1
        assert backend.rows(real_pb.FOOTER_DATA)[0]["total"] == 5

    def test_update_dropped_when_row_changed_since(self, backend, state_conn):
        row = backend.add(real_pb.FOOTER_DATA, {"date": "2024-05-01", "parameter_id": "p1", "total": 1})
        state_store.enqueue_operation(
            state_conn,
            real_pb.FOOTER_DATA,
            "update",
            {"total": 2},
            record_id=row["id"],
            base_updated=row["updated"],
        )
        backend.update_record(None, real_pb.FOOTER_DATA, row["id"], {"total": 3})

        result = pending_sync.replay_pending_operations(None, state_conn)

        assert result["stale"] == 1
        assert backend.rows(real_pb.FOOTER_DATA)[0]["total"] == 3

    def test_update_applied_when_row_unchanged(self, backend, state_conn):
        row = backend.add(real_pb.FOOTER_DATA, {"date": "2024-05-01", "parameter_id": "p1", "total": 1})
        state_store.enqueue_operation(
            state_conn, real_pb.FOOTER_DATA, "update", {"total": 2}, record_id=row["id"], base_updated=row["updated"]
        )

        assert pending_sync.replay_pending_operations(None, state_conn)["synced"] == 1
        assert backend.rows(real_pb.FOOTER_DATA)[0]["total"] == 2

    def test_update_and_delete_of_missing_row_are_dropped(self, backend, state_conn):
        state_store.enqueue_operation(state_conn, real_pb.FOOTER_DATA, "update", {"total": 2}, record_id="gone1")
        state_store.enqueue_operation(state_conn, real_pb.MATERIAL_USAGE, "delete", {}, record_id="gone2")

        result = pending_sync.replay_pending_operations(None, state_conn)

        assert result == {"total": 2, "synced": 0, "stale": 2, "failed": 0}
        assert backend.writes() == []
