"""
Root conftest.py for plant-ops-sync tests.

Shared fixtures: an in-memory stand-in for the PocketBase client module,
sample parameter settings and hourly records, and a throwaway state store.
"""

import re
import sys
import threading
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from pocketbase_api import client as real_pb
from operational_sync import state_store

UNIT = "Cement Mill 220"

_FILTER_CLAUSE = re.compile(r'^(\w+)="((?:[^"\\]|\\.)*)"$')


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


# ============================================================================
# Fake PocketBase
# ============================================================================


class FakePocketBase:
    """
    Drop-in replacement for the pocketbase_api.client module.

    Records live in memory per collection and get an increasing `updated`
    stamp on every write. Filters of the form `field="value" && ...` are
    understood (`date` compares on its YYYY-MM-DD prefix). Reads and writes
    can be made to fail per collection (and optionally per date) to exercise
    error paths.
    """

    PocketBaseError = real_pb.PocketBaseError
    quote_filter_value = staticmethod(real_pb.quote_filter_value)

    def __init__(self):
        self.collections = {}
        self.calls = []
        self.fail_reads = set()
        self.fail_writes = set()
        self._next_id = 0
        self._clock = 0
        self._lock = threading.Lock()

    def __getattr__(self, name):
        # Collection names, unique keys and other module constants
        return getattr(real_pb, name)

    def _stamp(self):
        self._clock += 1
        return f"2024-06-01 00:00:00.{self._clock:06d}Z"

    def add(self, collection, record):
        with self._lock:
            self._next_id += 1
            stored = {"id": record.get("id") or f"rec{self._next_id:011d}", **record}
            stored.setdefault("updated", self._stamp())
            self.collections.setdefault(collection, []).append(stored)
        return stored

    def rows(self, collection):
        return self.collections.get(collection, [])

    def writes(self):
        return [call for call in self.calls if call[0] in ("create", "update", "delete")]

    def create_session(self, *args, **kwargs):
        return None

    @staticmethod
    def parse_filter(filter_expr):
        clauses = {}
        if filter_expr:
            for clause in filter_expr.split(" && "):
                match = _FILTER_CLAUSE.match(clause.strip())
                assert match, f"unsupported filter: {filter_expr}"
                clauses[match.group(1)] = re.sub(r"\\(.)", r"\1", match.group(2))
        return clauses

    @staticmethod
    def matches(row, clauses):
        for field, value in clauses.items():
            stored = str(row.get(field, ""))
            if field == "date":
                stored = stored[:10]
            if stored != value:
                return False
        return True

    def get_full_list(self, session, collection, filter_expr=None, sort=None, batch_size=None):
        clauses = self.parse_filter(filter_expr)
        if collection in self.fail_reads or (collection, clauses.get("date")) in self.fail_reads:
            raise real_pb.PocketBaseError(f"read {collection} failed", status=500)

        with self._lock:
            self.calls.append(("list", collection, filter_expr))
            return [dict(r) for r in self.rows(collection) if self.matches(r, clauses)]

    def get_first(self, session, collection, filter_expr):
        rows = self.get_full_list(session, collection, filter_expr=filter_expr)
        return rows[0] if rows else None

    def get_one(self, session, collection, record_id):
        if collection in self.fail_reads:
            raise real_pb.PocketBaseError(f"read {collection} failed", status=500)
        with self._lock:
            row = next((r for r in self.rows(collection) if r["id"] == record_id), None)
            return dict(row) if row else None

    def create_record(self, session, collection, data):
        if collection in self.fail_writes:
            raise real_pb.PocketBaseError(f"create {collection} failed", status=400)
        key = real_pb.unique_key(collection, data)
        with self._lock:
            if key and any(real_pb.unique_key(collection, r) == key for r in self.rows(collection)):
                raise real_pb.PocketBaseError("Failed to create record.", status=400)
            self.calls.append(("create", collection, dict(data)))
        return self.add(collection, dict(data))

    def update_record(self, session, collection, record_id, data):
        if collection in self.fail_writes:
            raise real_pb.PocketBaseError(f"update {collection} failed", status=400)
        with self._lock:
            self.calls.append(("update", collection, record_id, dict(data)))
            for row in self.rows(collection):
                if row["id"] == record_id:
                    row.update(data)
                    row["updated"] = self._stamp()
                    return dict(row)
        raise real_pb.PocketBaseError("not found", status=404)

    def delete_record(self, session, collection, record_id):
        if collection in self.fail_writes:
            raise real_pb.PocketBaseError(f"delete {collection} failed", status=400)
        with self._lock:
            self.calls.append(("delete", collection, record_id))
            before = len(self.rows(collection))
            self.collections[collection] = [r for r in self.rows(collection) if r["id"] != record_id]
            if len(self.collections[collection]) == before:
                raise real_pb.PocketBaseError("not found", status=404)


# ============================================================================
# Sample Data Builders
# ============================================================================


def make_param(param_id, parameter, unit=UNIT, category="CM", data_type="Number", **extra):
    return {
        "id": param_id,
        "parameter": parameter,
        "data_type": data_type,
        "unit": unit,
        "category": category,
        **extra,
    }


def make_flat_record(param_id, date_str, values, **extra):
    """Flat hourly record; `values` maps hour -> value."""
    record = {"parameter_id": param_id, "date": date_str, **extra}
    for hour in range(1, 25):
        record[f"hour{hour}"] = values.get(hour, "")
    return record


def cumulative(step):
    """Counter feeder reading that grows by `step` every hour."""
    return {hour: hour * step for hour in range(1, 25)}


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def fake_pb():
    return FakePocketBase()


@pytest.fixture
def parameter_settings():
    return [
        make_param("pclinker", "Counter Feeder Clinker (ton)"),
        make_param("pgypsum", "Counter Feeder Gypsum (ton)"),
        make_param("pfeed", "Feed Rate (tph)", min_value=90, max_value=130),
        make_param("pnote", "Shift Notes", data_type="Text"),
    ]


@pytest.fixture
def seeded_pb(fake_pb, parameter_settings):
    """Backend with settings and one day (2024-05-01) of hourly data."""
    for param in parameter_settings:
        fake_pb.add(real_pb.PARAMETER_SETTINGS, param)
    fake_pb.add(real_pb.PARAMETER_DATA, make_flat_record("pclinker", "2024-05-01", cumulative(10)))
    fake_pb.add(real_pb.PARAMETER_DATA, make_flat_record("pgypsum", "2024-05-01", cumulative(1)))
    fake_pb.add(real_pb.PARAMETER_DATA, make_flat_record("pfeed", "2024-05-01", {h: 100 for h in range(1, 25)}))
    fake_pb.add(real_pb.PARAMETER_DATA, make_flat_record("pnote", "2024-05-01", {1: "ok"}))
    return fake_pb


@pytest.fixture
def state_conn():
    conn = state_store.get_connection(":memory:")
    yield conn
    conn.close()
