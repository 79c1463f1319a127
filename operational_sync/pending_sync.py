"""
Pending Operations Replay

Replays backend writes that were queued in the local state store after
failing (create, update, delete). Operations run in the order they were
queued; a successful operation leaves the queue, a failing one stays with
its attempt count and last error updated.

An operation that a later write already covers is dropped instead of
applied: a create whose natural key now exists, an update whose row changed
since the payload was computed, and an update or delete whose row is gone.

Usage:
    python -m operational_sync.pending_sync
    python -m operational_sync.pending_sync --limit 100
"""

import sys
import logging
import argparse
import sqlite3
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

from pocketbase_api import client as pb
from operational_sync import state_store

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Replay outcomes
SYNCED = "synced"
STALE = "stale"


def is_stale(session: requests.Session, op: Dict[str, Any]) -> bool:
    """
    Whether a later write already covers a queued operation.

    - create: a row with the same natural key exists
    - update: the row is gone, or changed since the payload was computed
    - delete: the row is gone
    """
    collection = op["collection"]
    op_type = op["op_type"]

    if op_type == "create":
        filter_expr = pb.unique_key_filter(collection, op["payload"])
        if not filter_expr:
            return False
        return pb.get_first(session, collection, filter_expr) is not None

    if op_type in ("update", "delete"):
        current = pb.get_one(session, collection, op["record_id"])
        if current is None:
            return True
        base_updated = op.get("base_updated")
        return op_type == "update" and bool(base_updated) and current.get("updated") != base_updated

    return False


def apply_pending_operation(session: requests.Session, op: Dict[str, Any]) -> str:
    """
    Apply one queued operation unless a later write made it stale.

    Returns:
        SYNCED or STALE

    Raises:
        ValueError: Unknown operation type
    """
    collection = op["collection"]
    op_type = op["op_type"]
    if op_type not in state_store.OPERATION_TYPES:
        raise ValueError(f"Unknown operation type: {op_type}")

    if is_stale(session, op):
        return STALE

    if op_type == "create":
        pb.create_record(session, collection, op["payload"])
    elif op_type == "update":
        pb.update_record(session, collection, op["record_id"], op["payload"])
    else:
        pb.delete_record(session, collection, op["record_id"])
    return SYNCED


def replay_pending_operations(
    session: requests.Session,
    conn: sqlite3.Connection,
    limit: Optional[int] = None,
) -> Dict[str, int]:
    """
    Replay queued operations against the backend.

    Stale operations (see is_stale) leave the queue without being applied.

    Args:
        session: PocketBase session
        conn: State store connection
        limit: Maximum number of operations to replay

    Returns:
        Dictionary with total, synced, stale and failed counts
    """
    operations = state_store.get_pending_operations(conn, limit=limit)
    result = {"total": len(operations), "synced": 0, "stale": 0, "failed": 0}

    if not operations:
        logger.info("No pending operations")
        return result

    logger.info(f"Replaying {len(operations)} pending operations")
    for op in operations:
        try:
            outcome = apply_pending_operation(session, op)
        except (pb.PocketBaseError, requests.RequestException, ValueError) as e:
            logger.error(f"Failed to sync operation {op['id']} ({op['op_type']} {op['collection']}): {e}")
            state_store.mark_operation_failed(conn, op["id"], str(e))
            result["failed"] += 1
            continue

        if outcome == STALE:
            logger.info(
                f"Dropping stale operation {op['id']} ({op['op_type']} {op['collection']} "
                f"{op.get('record_key') or op.get('record_id') or ''})"
            )
        state_store.remove_operation(conn, op["id"])
        result[outcome] += 1

    logger.info(
        f"Replay finished: {result['synced']} synced, {result['stale']} stale, "
        f"{result['failed']} still pending"
    )
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay queued backend writes")
    parser.add_argument("--limit", type=int, help="Maximum number of operations to replay")
    parser.add_argument("--state-db", default=state_store.SYNC_STATE_DB, help="State database path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    conn = state_store.get_connection(args.state_db)
    try:
        session = pb.create_session()
        result = replay_pending_operations(session, conn, limit=args.limit)
    except (pb.PocketBaseError, requests.RequestException) as e:
        logger.error(f"Replay failed: {e}")
        return 2
    finally:
        conn.close()

    return 3 if result["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
