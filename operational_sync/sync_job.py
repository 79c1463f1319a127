"""
Operational Data Sync Job

Recomputes footer data (daily and shift aggregates per parameter) from the
hourly readings in ccr_parameter_data, then derives per-unit, per-shift
material usage from the counter-feeder footers.

Pipeline per date:
1. Read raw hourly parameter records for the date
2. Compute daily/shift aggregates per numeric parameter
3. Diff against existing ccr_footer_data rows, upsert changed rows only
4. Build material usage from the fresh footer set
5. Diff against existing ccr_material_usage rows, upsert changed rows only

Production Features:
- Idempotent: unchanged rows are never rewritten
- Bounded parallelism: dates and writes run in small concurrent groups
  separated by fixed delays
- Per-date error isolation: one failing date does not abort the batch
- Failed writes are queued in the local state store for replay; a
  later sync of the same date supersedes them
- Run bookkeeping in the local state store

Usage:
    python -m operational_sync.sync_job --month 5 --year 2024
    python -m operational_sync.sync_job --date 2024-05-14
    python -m operational_sync.sync_job --start 2024-05-01 --end 2024-05-07 --dry-run
"""

import os
import sys
import time
import logging
import argparse
import calendar
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

import requests
from dotenv import load_dotenv

from pocketbase_api import client as pb
from operational_sync import state_store
from operational_sync.calculations import (
    SHIFT_HOURS,
    calculate_parameter_stats,
    calculate_shift_counter,
    calculate_shift_stats,
    round2,
)

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Constants
SYNC_DAY_CONCURRENCY = int(os.getenv("SYNC_DAY_CONCURRENCY", "3"))
SYNC_WRITE_CHUNK_SIZE = int(os.getenv("SYNC_WRITE_CHUNK_SIZE", "5"))
SYNC_DAY_CHUNK_DELAY = float(os.getenv("SYNC_DAY_CHUNK_DELAY", "0.1"))
SYNC_WRITE_CHUNK_DELAY = float(os.getenv("SYNC_WRITE_CHUNK_DELAY", "0.05"))
PLANT_TIMEZONE = os.getenv("PLANT_TIMEZONE", "Asia/Makassar")

DEFAULT_PLANT_UNIT = "CCR"

MATERIAL_TO_PARAMETER = {
    "clinker": "Counter Feeder Clinker (ton)",
    "gypsum": "Counter Feeder Gypsum (ton)",
    "limestone": "Counter Feeder Limestone (ton)",
    "trass": "Counter Feeder Trass (ton)",
    "fly_ash": "Counter Feeder Flyash (ton)",
    "fine_trass": "Counter Feeder Fine Trass (ton)",
    "ckd": "Counter Feeder CKD (ton)",
}

# Shift order within a production day
SHIFTS = ["shift3_cont", "shift1", "shift2", "shift3"]

SHIFT_COUNTER_FIELDS = {shift: f"{shift}_counter" for shift in SHIFTS}

STAT_NAMES = (
    "days_processed",
    "days_skipped",
    "days_failed",
    "footer_created",
    "footer_updated",
    "footer_unchanged",
    "material_created",
    "material_updated",
    "material_unchanged",
    "write_failures",
    "queue_discarded",
)

_stats_lock = threading.Lock()


class SyncError(Exception):
    """Sync run could not start or complete."""


# ============================================================================
# Statistics Functions
# ============================================================================

def create_sync_stats(days_total: int = 0) -> Dict[str, int]:
    stats = {name: 0 for name in STAT_NAMES}
    stats["days_total"] = days_total
    return stats


def increment_stat(stats: Dict[str, int], stat_name: str, value: int = 1):
    """Thread-safe increment of a run statistic."""
    with _stats_lock:
        stats[stat_name] = stats.get(stat_name, 0) + value


def merge_day_summary(stats: Dict[str, int], summary: Dict[str, Any]):
    with _stats_lock:
        for name in STAT_NAMES:
            if name in summary:
                stats[name] += summary[name]


# ============================================================================
# Helper Functions
# ============================================================================

def chunk_list(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def date_filter(date_str: str) -> str:
    return f"date={pb.quote_filter_value(date_str)}"


def normalize_date(value: Any) -> Any:
    # Stored date fields may carry a time part ("2024-05-01 00:00:00.000Z")
    if isinstance(value, str) and len(value) >= 10:
        return value[:10]
    return value


def records_equal(payload: Dict[str, Any], existing: Optional[Dict[str, Any]], keys: Iterable[str]) -> bool:
    """
    Shallow comparison of a computed payload against a stored record.

    Args:
        payload: Freshly computed row
        existing: Stored row (or None)
        keys: Fields to compare

    Returns:
        True if every compared field is equal
    """
    if not payload or not existing:
        return False
    for key in keys:
        left, right = payload.get(key), existing.get(key)
        if key == "date":
            left, right = normalize_date(left), normalize_date(right)
        if left != right:
            return False
    return True


def plan_upserts(
    payloads: List[Dict[str, Any]],
    existing_by_key: Dict[Any, Dict[str, Any]],
    key_fn: Callable[[Dict[str, Any]], Any],
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Turn computed rows into create/update operations.

    Rows whose stored counterpart is equal on every payload field produce no
    operation.

    Returns:
        Tuple of (operations, unchanged_count). Each operation is a dict with
        "payload", "existing_id" (None for creates) and "existing_updated",
        the stored row's `updated` stamp.
    """
    ops = []
    unchanged = 0
    for payload in payloads:
        existing = existing_by_key.get(key_fn(payload))
        if existing and records_equal(payload, existing, payload.keys()):
            unchanged += 1
            continue
        ops.append({
            "payload": payload,
            "existing_id": existing.get("id") if existing else None,
            "existing_updated": existing.get("updated") if existing else None,
        })
    return ops, unchanged


# ============================================================================
# Footer Data Functions
# ============================================================================

def build_footer_payload(
    param: Dict[str, Any],
    data: Dict[str, Any],
    date_str: str,
) -> Optional[Dict[str, Any]]:
    """
    Compute the footer row of one parameter for one day.

    Args:
        param: Parameter setting
        data: Raw hourly record of the parameter
        date_str: Date in YYYY-MM-DD format

    Returns:
        Footer payload, or None when the parameter has no numeric readings
    """
    daily = calculate_parameter_stats(param, data)
    if not daily:
        return None

    payload = {
        "date": date_str,
        "parameter_id": param["id"],
        "plant_unit": param.get("category") or DEFAULT_PLANT_UNIT,
        "total": round2(daily["total"]),
        "average": round2(daily["avg"]),
        "minimum": round2(daily["min"]),
        "maximum": round2(daily["max"]),
    }

    shift_stats = {shift: calculate_shift_stats(param, data, SHIFT_HOURS[shift]) for shift in SHIFTS}
    for shift in ("shift1", "shift2", "shift3", "shift3_cont"):
        payload[f"{shift}_total"] = round2(shift_stats[shift]["total"])
    for shift in ("shift1", "shift2", "shift3", "shift3_cont"):
        payload[f"{shift}_average"] = round2(shift_stats[shift]["avg"])
    for shift in ("shift1", "shift2", "shift3", "shift3_cont"):
        payload[SHIFT_COUNTER_FIELDS[shift]] = round2(calculate_shift_counter(param, data, shift))

    return payload


def merge_fresh_footers(
    existing_footers: Iterable[Dict[str, Any]],
    footer_ops: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Footer rows as they will be once the planned operations are applied.

    Stored rows are overlaid with their pending update payloads and pending
    creates are appended.
    """
    updates = {op["existing_id"]: op["payload"] for op in footer_ops if op["existing_id"]}
    fresh = []
    for existing in existing_footers:
        update = updates.get(existing.get("id"))
        fresh.append({**existing, **update} if update else existing)
    fresh.extend(dict(op["payload"]) for op in footer_ops if not op["existing_id"])
    return fresh


# ============================================================================
# Material Usage Functions
# ============================================================================

def material_key(record: Dict[str, Any]) -> str:
    return f"{record.get('plant_unit')}-{record.get('shift')}"


def resolve_unit_category(parameter_settings: List[Dict[str, Any]], unit: str) -> str:
    """Plant category of a unit: CM wins over RKC, CM when neither is present."""
    categories = {p.get("category") for p in parameter_settings if p.get("unit") == unit}
    if "CM" in categories:
        return "CM"
    if "RKC" in categories:
        return "RKC"
    return "CM"


def get_units(parameter_settings: List[Dict[str, Any]]) -> List[str]:
    units = []
    for param in parameter_settings:
        unit = param.get("unit")
        if unit and unit not in units:
            units.append(unit)
    return units


def build_material_usage(
    parameter_settings: List[Dict[str, Any]],
    fresh_footers: List[Dict[str, Any]],
    unit: str,
    shift: str,
    date_str: str,
) -> Tuple[Dict[str, Any], bool]:
    """
    Material usage of one unit and shift from counter-feeder footers.

    Args:
        parameter_settings: All parameter settings
        fresh_footers: Footer rows of the day (after planned updates)
        unit: Plant unit
        shift: Shift key
        date_str: Date in YYYY-MM-DD format

    Returns:
        Tuple of (payload, has_data). has_data is False when no material
        used more than zero, and such rows are not written.
    """
    category = resolve_unit_category(parameter_settings, unit)
    counter_field = SHIFT_COUNTER_FIELDS[shift]

    payload: Dict[str, Any] = {
        "date": date_str,
        "plant_category": category,
        "plant_unit": unit,
        "shift": shift,
    }
    total_production = 0.0
    has_data = False

    for material, parameter_name in MATERIAL_TO_PARAMETER.items():
        setting = next(
            (
                s for s in parameter_settings
                if s.get("parameter") == parameter_name
                and s.get("unit") == unit
                and s.get("category") == category
            ),
            None,
        )
        if not setting:
            continue

        footer = next((f for f in fresh_footers if f.get("parameter_id") == setting["id"]), None)
        if not footer:
            continue

        value = round2(float(footer.get(counter_field) or 0))
        payload[material] = value
        total_production += value
        if value > 0:
            has_data = True

    payload["total_production"] = round2(total_production)
    return payload, has_data


# ============================================================================
# Write Functions
# ============================================================================

def apply_operation(session: requests.Session, collection: str, op: Dict[str, Any]) -> Dict[str, Any]:
    if op["existing_id"]:
        return pb.update_record(session, collection, op["existing_id"], op["payload"])
    return pb.create_record(session, collection, op["payload"])


def execute_upserts(
    session: requests.Session,
    collection: str,
    ops: List[Dict[str, Any]],
    chunk_size: int = SYNC_WRITE_CHUNK_SIZE,
    delay: float = SYNC_WRITE_CHUNK_DELAY,
    state_conn: Optional[sqlite3.Connection] = None,
) -> Tuple[int, int]:
    """
    Run upsert operations in small concurrent chunks.

    Failures are logged and counted, never raised. When a state connection
    is given, failed writes are queued for replay.

    Args:
        session: PocketBase session
        collection: Target collection
        ops: Operations from plan_upserts()
        chunk_size: Operations sent concurrently
        delay: Seconds to wait between chunks
        state_conn: Optional state store for failed writes

    Returns:
        Tuple of (succeeded, failed)
    """
    if not ops:
        return 0, 0

    succeeded = 0
    failed = 0
    chunks = chunk_list(ops, chunk_size)

    with ThreadPoolExecutor(max_workers=chunk_size) as executor:
        for index, chunk in enumerate(chunks):
            futures = [executor.submit(apply_operation, session, collection, op) for op in chunk]
            for op, future in zip(chunk, futures):
                try:
                    future.result()
                    succeeded += 1
                except (pb.PocketBaseError, requests.RequestException) as e:
                    failed += 1
                    action = "update" if op["existing_id"] else "create"
                    logger.error(f"Failed to {action} {collection} row {op['existing_id'] or ''}: {e}")
                    if state_conn is not None:
                        state_store.enqueue_operation(
                            state_conn,
                            collection,
                            action,
                            op["payload"],
                            record_id=op["existing_id"],
                            error=str(e),
                            op_date=normalize_date(op["payload"].get("date")),
                            base_updated=op.get("existing_updated"),
                            record_key=pb.unique_key(collection, op["payload"]),
                        )
            if delay and index < len(chunks) - 1:
                time.sleep(delay)

    return succeeded, failed


def count_ops(ops: List[Dict[str, Any]]) -> Tuple[int, int]:
    updates = sum(1 for op in ops if op["existing_id"])
    return len(ops) - updates, updates


# ============================================================================
# Day Sync
# ============================================================================

def process_day_sync(
    session: requests.Session,
    day: date,
    parameter_settings: List[Dict[str, Any]],
    state_conn: Optional[sqlite3.Connection] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """
    Recompute and upsert footer data and material usage for one date.

    Read failures raise (the caller isolates the date); write failures are
    counted in the summary.

    Args:
        session: PocketBase session
        day: Date to process
        parameter_settings: All parameter settings
        state_conn: Optional state store for failed writes
        dry_run: Plan operations without writing

    Returns:
        Per-day summary dictionary
    """
    date_str = day.isoformat()
    summary: Dict[str, Any] = {"date": date_str, "days_processed": 0, "days_skipped": 0}

    raw_data = pb.get_full_list(session, pb.PARAMETER_DATA, filter_expr=date_filter(date_str))
    if not raw_data:
        logger.debug(f"{date_str}: no hourly data, skipping")
        summary["days_skipped"] = 1
        return summary

    data_map = {record.get("parameter_id"): record for record in raw_data}
    track_queue = state_conn is not None and not dry_run
    queue_mark = state_store.last_operation_id(state_conn) if track_queue else 0

    existing_footers = pb.get_full_list(session, pb.FOOTER_DATA, filter_expr=date_filter(date_str))
    existing_footer_map = {footer.get("parameter_id"): footer for footer in existing_footers}

    footer_payloads = []
    for param in parameter_settings:
        data = data_map.get(param.get("id"))
        if not data:
            continue
        payload = build_footer_payload(param, data, date_str)
        if payload:
            footer_payloads.append(payload)

    footer_ops, footer_unchanged = plan_upserts(
        footer_payloads, existing_footer_map, key_fn=lambda p: p["parameter_id"]
    )
    summary["footer_created"], summary["footer_updated"] = count_ops(footer_ops)
    summary["footer_unchanged"] = footer_unchanged

    write_failures = 0
    if footer_ops and not dry_run:
        _, failed = execute_upserts(session, pb.FOOTER_DATA, footer_ops, state_conn=state_conn)
        write_failures += failed

    existing_materials = pb.get_full_list(session, pb.MATERIAL_USAGE, filter_expr=date_filter(date_str))
    existing_material_map = {material_key(m): m for m in existing_materials}

    fresh_footers = merge_fresh_footers(existing_footer_map.values(), footer_ops)

    material_payloads = []
    for unit in get_units(parameter_settings):
        for shift in SHIFTS:
            payload, has_data = build_material_usage(parameter_settings, fresh_footers, unit, shift, date_str)
            if has_data:
                material_payloads.append(payload)

    material_ops, material_unchanged = plan_upserts(material_payloads, existing_material_map, key_fn=material_key)
    summary["material_created"], summary["material_updated"] = count_ops(material_ops)
    summary["material_unchanged"] = material_unchanged

    if material_ops and not dry_run:
        _, failed = execute_upserts(session, pb.MATERIAL_USAGE, material_ops, state_conn=state_conn)
        write_failures += failed

    summary["write_failures"] = write_failures
    summary["days_processed"] = 1

    # Every row of the date was recomputed; writes queued before this run are superseded
    if track_queue:
        summary["queue_discarded"] = state_store.discard_operations_for_date(
            state_conn, date_str, (pb.FOOTER_DATA, pb.MATERIAL_USAGE), up_to_id=queue_mark
        )

    logger.info(
        f"{date_str}: footer +{summary['footer_created']} ~{summary['footer_updated']} "
        f"={footer_unchanged}, material +{summary['material_created']} "
        f"~{summary['material_updated']} ={material_unchanged}"
        + (f", {write_failures} failed writes" if write_failures else "")
    )
    return summary


# ============================================================================
# Range Sync
# ============================================================================

def iter_dates(start: date, end: date) -> List[date]:
    if end < start:
        raise ValueError(f"End date {end} is before start date {start}")
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def month_dates(month: int, year: int) -> List[date]:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, last_day + 1)]


def fetch_parameter_settings(session: requests.Session) -> List[Dict[str, Any]]:
    try:
        return pb.get_full_list(session, pb.PARAMETER_SETTINGS)
    except (pb.PocketBaseError, requests.RequestException) as e:
        raise SyncError(f"Failed to fetch parameter settings: {e}") from e


def sync_operational_data_for_range(
    session: requests.Session,
    dates: List[date],
    on_progress: Optional[Callable[[int, int], None]] = None,
    state_conn: Optional[sqlite3.Connection] = None,
    dry_run: bool = False,
    sync_key: Optional[str] = None,
    concurrency: int = SYNC_DAY_CONCURRENCY,
    chunk_delay: float = SYNC_DAY_CHUNK_DELAY,
) -> Dict[str, int]:
    """
    Sync footer data and material usage for a list of dates.

    Dates run in groups of `concurrency`, with `chunk_delay` seconds between
    groups. A failing date is logged and counted; the rest continue.

    Args:
        session: PocketBase session
        dates: Dates to process
        on_progress: Called with (processed, total) after every date
        state_conn: Optional state store (failed writes, run bookkeeping)
        dry_run: Plan operations without writing
        sync_key: Key for run bookkeeping (default derived from the range)
        concurrency: Dates processed at the same time
        chunk_delay: Seconds between date groups

    Returns:
        Run statistics

    Raises:
        SyncError: If parameter settings cannot be fetched
    """
    parameter_settings = fetch_parameter_settings(session)
    logger.info(f"Loaded {len(parameter_settings)} parameter settings")

    total = len(dates)
    stats = create_sync_stats(total)
    progress = {"processed": 0}

    def sync_one_day(day: date):
        try:
            summary = process_day_sync(session, day, parameter_settings, state_conn=state_conn, dry_run=dry_run)
            merge_day_summary(stats, summary)
        except Exception as e:
            logger.error(f"Error processing {day.isoformat()}: {e}", exc_info=True)
            increment_stat(stats, "days_failed")
        finally:
            with _stats_lock:
                progress["processed"] += 1
                processed = progress["processed"]
            if on_progress:
                on_progress(processed, total)

    chunks = chunk_list(dates, max(concurrency, 1))
    with ThreadPoolExecutor(max_workers=max(concurrency, 1)) as executor:
        for index, chunk in enumerate(chunks):
            list(executor.map(sync_one_day, chunk))
            if chunk_delay and index < len(chunks) - 1:
                time.sleep(chunk_delay)

    if state_conn is not None and not dry_run and dates:
        key = sync_key or f"operational:{dates[0].isoformat()}:{dates[-1].isoformat()}"
        written = sum(
            stats[name] for name in ("footer_created", "footer_updated", "material_created", "material_updated")
        ) - stats["write_failures"]
        status = "success" if not stats["days_failed"] and not stats["write_failures"] else "partial"
        state_store.update_last_sync(state_conn, key, datetime.now(), written, status)

    return stats


def sync_operational_data_for_month(
    session: requests.Session,
    month: int,
    year: int,
    on_progress: Optional[Callable[[int, int], None]] = None,
    state_conn: Optional[sqlite3.Connection] = None,
    dry_run: bool = False,
) -> Dict[str, int]:
    logger.info(f"Starting operational data sync for {month}/{year}")
    stats = sync_operational_data_for_range(
        session,
        month_dates(month, year),
        on_progress=on_progress,
        state_conn=state_conn,
        dry_run=dry_run,
        sync_key=f"operational:{year:04d}-{month:02d}",
    )
    logger.info(f"Operational data sync completed for {month}/{year}")
    return stats


def log_stats(stats: Dict[str, int]):
    logger.info("=" * 60)
    logger.info("Operational Sync Summary")
    logger.info("=" * 60)
    logger.info(
        f"Days: {stats['days_total']} total, {stats['days_processed']} processed, "
        f"{stats['days_skipped']} without data, {stats['days_failed']} failed"
    )
    logger.info(
        f"Footer data: {stats['footer_created']} created, {stats['footer_updated']} updated, "
        f"{stats['footer_unchanged']} unchanged"
    )
    logger.info(
        f"Material usage: {stats['material_created']} created, {stats['material_updated']} updated, "
        f"{stats['material_unchanged']} unchanged"
    )
    if stats["write_failures"]:
        logger.warning(f"Failed writes: {stats['write_failures']}")
    if stats["queue_discarded"]:
        logger.info(f"Superseded queued writes discarded: {stats['queue_discarded']}")
    logger.info("=" * 60)


# ============================================================================
# Main Function
# ============================================================================

def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value} (expected YYYY-MM-DD)")


def resolve_dates(args: argparse.Namespace) -> Tuple[List[date], Optional[str]]:
    if args.date:
        return [args.date], None
    if args.start or args.end:
        if not (args.start and args.end):
            raise ValueError("--start and --end must be given together")
        return iter_dates(args.start, args.end), None

    today = datetime.now(ZoneInfo(PLANT_TIMEZONE)).date()
    month = args.month or today.month
    year = args.year or today.year
    return month_dates(month, year), f"operational:{year:04d}-{month:02d}"


def main() -> int:
    """
    Run the operational sync from the command line.

    Exit codes:
        0: Success
        1: Invalid arguments
        2: Backend unavailable or parameter settings missing
        3: Completed with failed dates or writes
    """
    parser = argparse.ArgumentParser(description="Recompute footer data and material usage")
    parser.add_argument("--month", type=int, help="Month to sync (default: current month)")
    parser.add_argument("--year", type=int, help="Year to sync (default: current year)")
    parser.add_argument("--date", type=parse_date, help="Single date to sync (YYYY-MM-DD)")
    parser.add_argument("--start", type=parse_date, help="First date of a range (YYYY-MM-DD)")
    parser.add_argument("--end", type=parse_date, help="Last date of a range (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true", help="Plan writes without applying them")
    parser.add_argument("--no-state", action="store_true", help="Do not use the local state store")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        dates, sync_key = resolve_dates(args)
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        return 1

    logger.info("=" * 60)
    logger.info("Starting Operational Data Sync")
    logger.info("=" * 60)
    logger.info(f"PocketBase: {pb.POCKETBASE_URL}")
    logger.info(f"Dates: {dates[0].isoformat()} .. {dates[-1].isoformat()} ({len(dates)} days)")
    logger.info(f"Mode: {'dry run' if args.dry_run else 'write'}")
    logger.info(f"Day concurrency: {SYNC_DAY_CONCURRENCY}, write chunk size: {SYNC_WRITE_CHUNK_SIZE}")
    logger.info("=" * 60)

    state_conn = None if args.no_state else state_store.get_connection()
    sync_start = time.time()

    def report_progress(processed: int, total: int):
        logger.info(f"Progress: {processed}/{total} days")

    try:
        session = pb.create_session()
        stats = sync_operational_data_for_range(
            session,
            dates,
            on_progress=report_progress,
            state_conn=state_conn,
            dry_run=args.dry_run,
            sync_key=sync_key,
        )
    except (SyncError, pb.PocketBaseError, requests.RequestException) as e:
        logger.error(f"Sync job failed: {e}")
        return 2
    finally:
        if state_conn is not None:
            state_conn.close()

    log_stats(stats)
    logger.info(f"Total sync time: {time.time() - sync_start:.2f}s")

    if stats["days_failed"] or stats["write_failures"]:
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
