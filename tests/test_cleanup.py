"""
Tests for operational_sync.cleanup.

Verifies that:
- Footer rows without hourly data for the date are deleted, others kept
- Duplicate material usage rows collapse to the newest one
- Dry runs delete nothing
- Subcommand options are accepted after the subcommand name
"""

import sys

import pytest

from operational_sync import cleanup
from pocketbase_api import client as real_pb


@pytest.fixture
def backend(fake_pb, monkeypatch):
    monkeypatch.setattr(cleanup, "pb", fake_pb)
    return fake_pb


def usage(record_id, created, shift="shift1", unit="Cement Mill 220"):
    return {
        "id": record_id,
        "date": "2024-05-01",
        "plant_category": "CM",
        "plant_unit": unit,
        "shift": shift,
        "created": created,
    }


class TestOrphanedFooters:
    @pytest.fixture
    def footers(self, backend):
        backend.add(real_pb.PARAMETER_DATA, {"parameter_id": "p1", "date": "2024-05-01"})
        backend.add(real_pb.FOOTER_DATA, {"id": "f1", "parameter_id": "p1", "date": "2024-05-01"})
        backend.add(real_pb.FOOTER_DATA, {"id": "f2", "parameter_id": "p2", "date": "2024-05-01"})
        backend.add(real_pb.FOOTER_DATA, {"id": "f3", "parameter_id": "p3", "date": "2024-05-02"})
        return backend

    def test_find(self, footers):
        assert [f["id"] for f in cleanup.find_orphaned_footers(None, "2024-05-01")] == ["f2"]

    def test_cleanup_deletes_orphans_only(self, footers):
        assert cleanup.cleanup_orphaned_footers(None, "2024-05-01") == 1
        assert {f["id"] for f in footers.rows(real_pb.FOOTER_DATA)} == {"f1", "f3"}

    def test_dry_run(self, footers):
        assert cleanup.cleanup_orphaned_footers(None, "2024-05-01", dry_run=True) == 0
        assert len(footers.rows(real_pb.FOOTER_DATA)) == 3

    def test_no_footers(self, backend):
        assert cleanup.find_orphaned_footers(None, "2024-05-01") == []

    def test_delete_failure_is_skipped(self, footers):
        footers.fail_writes.add(real_pb.FOOTER_DATA)
        assert cleanup.cleanup_orphaned_footers(None, "2024-05-01") == 0


class TestDuplicateMaterialUsage:
    def test_grouping_keeps_newest_first(self):
        records = [
            usage("a", "2024-05-01 10:00:00.000Z"),
            usage("b", "2024-05-02 09:00:00.000Z"),
            usage("c", "2024-05-01 08:00:00.000Z", shift="shift2"),
            usage("d", ""),
        ]
        groups = cleanup.group_material_usage_duplicates(records)

        assert list(groups) == ["2024-05-01|CM|Cement Mill 220|shift1"]
        assert [r["id"] for r in groups["2024-05-01|CM|Cement Mill 220|shift1"]] == ["b", "a", "d"]

    def test_cleanup_deletes_older_rows(self, backend):
        backend.add(real_pb.MATERIAL_USAGE, usage("old", "2024-05-01 10:00:00.000Z"))
        backend.add(real_pb.MATERIAL_USAGE, usage("new", "2024-05-01 11:00:00.000Z"))
        backend.add(real_pb.MATERIAL_USAGE, usage("other", "2024-05-01 09:00:00.000Z", unit="Cement Mill 320"))

        assert cleanup.cleanup_duplicate_material_usage(None) == 1
        assert {r["id"] for r in backend.rows(real_pb.MATERIAL_USAGE)} == {"new", "other"}

    def test_dry_run(self, backend):
        backend.add(real_pb.MATERIAL_USAGE, usage("old", "2024-05-01 10:00:00.000Z"))
        backend.add(real_pb.MATERIAL_USAGE, usage("new", "2024-05-01 11:00:00.000Z"))

        assert cleanup.cleanup_duplicate_material_usage(None, dry_run=True) == 0
        assert len(backend.rows(real_pb.MATERIAL_USAGE)) == 2

    def test_no_duplicates(self, backend):
        backend.add(real_pb.MATERIAL_USAGE, usage("only", "2024-05-01 10:00:00.000Z"))
        assert cleanup.cleanup_duplicate_material_usage(None) == 0


class TestMain:
    def run_main(self, monkeypatch, *argv):
        monkeypatch.setattr(sys, "argv", ["cleanup", *argv])
        return cleanup.main()

    def test_duplicates_dry_run(self, backend, monkeypatch):
        backend.add(real_pb.MATERIAL_USAGE, usage("old", "2024-05-01 10:00:00.000Z"))
        backend.add(real_pb.MATERIAL_USAGE, usage("new", "2024-05-01 11:00:00.000Z"))

        assert self.run_main(monkeypatch, "duplicates", "--dry-run") == 0
        assert backend.writes() == []

    def test_orphans_dry_run(self, backend, monkeypatch):
        backend.add(real_pb.FOOTER_DATA, {"id": "f1", "parameter_id": "p1", "date": "2024-05-01"})

        assert self.run_main(monkeypatch, "orphans", "--date", "2024-05-01", "--dry-run") == 0
        assert len(backend.rows(real_pb.FOOTER_DATA)) == 1

    def test_orphans_deletes(self, backend, monkeypatch):
        backend.add(real_pb.FOOTER_DATA, {"id": "f1", "parameter_id": "p1", "date": "2024-05-01"})

        assert self.run_main(monkeypatch, "orphans", "--date", "2024-05-01") == 0
        assert backend.rows(real_pb.FOOTER_DATA) == []

    def test_invalid_date(self, backend, monkeypatch):
        assert self.run_main(monkeypatch, "orphans", "--date", "01/05/2024") == 1

    def test_backend_error(self, backend, monkeypatch):
        backend.fail_reads.add(real_pb.MATERIAL_USAGE)
        assert self.run_main(monkeypatch, "duplicates") == 2
