"""
Local Sync State Store

SQLite file that tracks sync runs and queues backend writes that failed,
so a later replay can complete them.

Tables:
1. sync_metadata - last run time, row count and status per sync key
2. pending_operations - queued create/update/delete operations
"""

import os
import json
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Constants
SYNC_STATE_DB = os.getenv("SYNC_STATE_DB", "sync_state.db")
SYNC_METADATA_TABLE = "sync_metadata"
PENDING_OPERATIONS_TABLE = "pending_operations"

OPERATION_TYPES = ("create", "update", "delete")

# Columns added after the first release; older state files get them on open
PENDING_EXTRA_COLUMNS = {
    "op_date": "TEXT",
    "base_updated": "TEXT",
    "record_key": "TEXT",
}

# Connections are shared with worker threads; serialize access
_db_lock = threading.Lock()


def get_connection(path: str = SYNC_STATE_DB) -> sqlite3.Connection:
    """
    Open the state database and make sure its tables exist.

    Args:
        path: SQLite file path (":memory:" for a throwaway store)

    Returns:
        sqlite3 connection with Row factory
    """
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    create_tables_if_not_exists(conn)
    return conn


def create_tables_if_not_exists(conn: sqlite3.Connection):
    create_sql = f"""
    CREATE TABLE IF NOT EXISTS {SYNC_METADATA_TABLE} (
        sync_key TEXT PRIMARY KEY,
        last_sync_time TEXT NOT NULL,
        last_sync_count INTEGER DEFAULT 0,
        last_status TEXT,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS {PENDING_OPERATIONS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        collection TEXT NOT NULL,
        op_type TEXT NOT NULL,
        record_id TEXT,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL,
        attempts INTEGER DEFAULT 0,
        last_error TEXT,
        op_date TEXT,
        base_updated TEXT,
        record_key TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_pending_created_at ON {PENDING_OPERATIONS_TABLE}(created_at);
    """
    try:
        conn.executescript(create_sql)
        add_missing_columns(conn)
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_pending_op_date ON {PENDING_OPERATIONS_TABLE}(op_date)"
        )
        conn.commit()
        logger.debug(f"Tables {SYNC_METADATA_TABLE} and {PENDING_OPERATIONS_TABLE} created/verified")
    except sqlite3.Error as e:
        logger.error(f"Error creating state tables: {e}")
        conn.rollback()
        raise


def add_missing_columns(conn: sqlite3.Connection):
    existing = {row[1] for row in conn.execute(f"PRAGMA table_info({PENDING_OPERATIONS_TABLE})")}
    for column, column_type in PENDING_EXTRA_COLUMNS.items():
        if column not in existing:
            conn.execute(f"ALTER TABLE {PENDING_OPERATIONS_TABLE} ADD COLUMN {column} {column_type}")
            logger.info(f"Added column {column} to {PENDING_OPERATIONS_TABLE}")


# ============================================================================
# Sync Metadata
# ============================================================================

def get_last_sync(conn: sqlite3.Connection, sync_key: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        f"SELECT sync_key, last_sync_time, last_sync_count, last_status, updated_at "
        f"FROM {SYNC_METADATA_TABLE} WHERE sync_key = ?",
        (sync_key,),
    ).fetchone()
    return dict(row) if row else None


def update_last_sync(
    conn: sqlite3.Connection,
    sync_key: str,
    sync_time: datetime,
    record_count: int,
    status: str = "success",
):
    """
    Record the outcome of a sync run.

    Args:
        conn: State database connection
        sync_key: Identifier of the synced range (e.g. "operational:2024-05")
        sync_time: Time the run finished
        record_count: Number of rows written
        status: success, partial or failed
    """
    now = datetime.now().isoformat()
    try:
        with _db_lock:
            conn.execute(
                f"""
                INSERT INTO {SYNC_METADATA_TABLE} (sync_key, last_sync_time, last_sync_count, last_status, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (sync_key) DO UPDATE SET
                    last_sync_time = excluded.last_sync_time,
                    last_sync_count = excluded.last_sync_count,
                    last_status = excluded.last_status,
                    updated_at = excluded.updated_at
                """,
                (sync_key, sync_time.isoformat(), record_count, status, now),
            )
            conn.commit()
        logger.info(f"Recorded sync {sync_key}: {record_count} rows, status={status}")
    except sqlite3.Error as e:
        logger.error(f"Error updating sync metadata: {e}")
        conn.rollback()
        raise


# ============================================================================
# Pending Operations Queue
# ============================================================================

def enqueue_operation(
    conn: sqlite3.Connection,
    collection: str,
    op_type: str,
    payload: Dict[str, Any],
    record_id: Optional[str] = None,
    error: Optional[str] = None,
    op_date: Optional[str] = None,
    base_updated: Optional[str] = None,
    record_key: Optional[str] = None,
) -> int:
    """
    Queue a backend write for later replay.

    An operation with a record_key supersedes every queued operation on the
    same collection and key, so only the latest computed row is replayed.

    Args:
        conn: State database connection
        collection: Target collection
        op_type: create, update or delete
        payload: Row data
        record_id: Target record id (update/delete)
        error: Error of the failed write
        op_date: Date (YYYY-MM-DD) the row belongs to
        base_updated: `updated` stamp of the row the payload was diffed against
        record_key: Natural key of the row (see client.unique_key)

    Returns:
        Queue row id
    """
    if op_type not in OPERATION_TYPES:
        raise ValueError(f"Unknown operation type: {op_type}")

    with _db_lock:
        if record_key:
            superseded = conn.execute(
                f"DELETE FROM {PENDING_OPERATIONS_TABLE} WHERE collection = ? AND record_key = ?",
                (collection, record_key),
            ).rowcount
            if superseded:
                logger.debug(f"Superseded {superseded} queued operation(s) on {collection} {record_key}")
        cursor = conn.execute(
            f"""
            INSERT INTO {PENDING_OPERATIONS_TABLE}
                (collection, op_type, record_id, payload, created_at, last_error, op_date, base_updated, record_key)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                collection,
                op_type,
                record_id,
                json.dumps(payload),
                datetime.now().isoformat(),
                error,
                op_date,
                base_updated,
                record_key,
            ),
        )
        conn.commit()
    logger.debug(f"Queued {op_type} on {collection} (record={record_id})")
    return cursor.lastrowid


def get_pending_operations(conn: sqlite3.Connection, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    query = (
        f"SELECT id, collection, op_type, record_id, payload, created_at, attempts, last_error, "
        f"op_date, base_updated, record_key "
        f"FROM {PENDING_OPERATIONS_TABLE} ORDER BY id"
    )
    params: tuple = ()
    if limit:
        query += " LIMIT ?"
        params = (limit,)

    operations = []
    for row in conn.execute(query, params).fetchall():
        op = dict(row)
        op["payload"] = json.loads(op["payload"])
        operations.append(op)
    return operations


def remove_operation(conn: sqlite3.Connection, op_id: int):
    with _db_lock:
        conn.execute(f"DELETE FROM {PENDING_OPERATIONS_TABLE} WHERE id = ?", (op_id,))
        conn.commit()


def last_operation_id(conn: sqlite3.Connection) -> int:
    return conn.execute(f"SELECT COALESCE(MAX(id), 0) FROM {PENDING_OPERATIONS_TABLE}").fetchone()[0]


def discard_operations_for_date(
    conn: sqlite3.Connection,
    op_date: str,
    collections: Iterable[str],
    up_to_id: Optional[int] = None,
) -> int:
    """
    Drop queued operations of a date whose rows a later sync recomputed.

    Args:
        conn: State database connection
        op_date: Date (YYYY-MM-DD)
        collections: Collections to clear
        up_to_id: Only drop operations queued at or before this id

    Returns:
        Number of discarded operations
    """
    collections = list(collections)
    if not collections:
        return 0
    placeholders = ", ".join("?" for _ in collections)
    query = f"DELETE FROM {PENDING_OPERATIONS_TABLE} WHERE op_date = ? AND collection IN ({placeholders})"
    params: list = [op_date, *collections]
    if up_to_id is not None:
        query += " AND id <= ?"
        params.append(up_to_id)
    with _db_lock:
        discarded = conn.execute(query, params).rowcount
        conn.commit()
    if discarded:
        logger.info(f"Discarded {discarded} queued operation(s) for {op_date}")
    return discarded


def mark_operation_failed(conn: sqlite3.Connection, op_id: int, error: str):
    with _db_lock:
        conn.execute(
            f"UPDATE {PENDING_OPERATIONS_TABLE} SET attempts = attempts + 1, last_error = ? WHERE id = ?",
            (error, op_id),
        )
        conn.commit()


def count_pending_operations(conn: sqlite3.Connection) -> int:
    return conn.execute(f"SELECT COUNT(*) FROM {PENDING_OPERATIONS_TABLE}").fetchone()[0]
