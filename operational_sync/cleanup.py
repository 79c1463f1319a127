"""
Aggregate Housekeeping

Maintenance jobs for the derived collections:
- orphans: delete footer rows whose hourly data no longer exists for the date
- duplicates: collapse duplicate material usage rows
  (same date, plant_category, plant_unit and shift), keeping the newest

Usage:
    python -m operational_sync.cleanup orphans --date 2024-05-14
    python -m operational_sync.cleanup duplicates --dry-run
"""

import sys
import logging
import argparse
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests
from dotenv import load_dotenv

from pocketbase_api import client as pb

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

MATERIAL_USAGE_UNIQUE_FIELDS = pb.UNIQUE_KEY_FIELDS[pb.MATERIAL_USAGE]


# ============================================================================
# Orphaned Footer Data
# ============================================================================

def find_orphaned_footers(session: requests.Session, date_str: str) -> List[Dict[str, Any]]:
    """
    Footer rows of a date that have no hourly parameter data behind them.

    Args:
        session: PocketBase session
        date_str: Date in YYYY-MM-DD format

    Returns:
        List of orphaned footer records
    """
    date_filter = f"date={pb.quote_filter_value(date_str)}"
    footers = pb.get_full_list(session, pb.FOOTER_DATA, filter_expr=date_filter)
    logger.info(f"Found {len(footers)} footer records for {date_str}")
    if not footers:
        return []

    raw_data = pb.get_full_list(session, pb.PARAMETER_DATA, filter_expr=date_filter)
    parameters_with_data = {record.get("parameter_id") for record in raw_data}

    return [footer for footer in footers if footer.get("parameter_id") not in parameters_with_data]


def cleanup_orphaned_footers(session: requests.Session, date_str: str, dry_run: bool = False) -> int:
    orphans = find_orphaned_footers(session, date_str)
    deleted = 0
    for footer in orphans:
        if dry_run:
            logger.info(f"Would delete footer {footer['id']} ({footer.get('parameter_id')})")
            continue
        try:
            pb.delete_record(session, pb.FOOTER_DATA, footer["id"])
            deleted += 1
            logger.info(f"Deleted footer {footer['id']} ({footer.get('parameter_id')}, {footer.get('plant_unit')})")
        except pb.PocketBaseError as e:
            logger.error(f"Failed to delete footer record {footer['id']}: {e}")

    logger.info(f"Cleanup complete: {len(orphans)} orphaned footer records, {deleted} deleted for {date_str}")
    return deleted


# ============================================================================
# Duplicate Material Usage
# ============================================================================

def duplicate_key(record: Dict[str, Any]) -> str:
    return "|".join(str(record.get(field)) for field in MATERIAL_USAGE_UNIQUE_FIELDS)


def parse_created(record: Dict[str, Any]) -> datetime:
    created = record.get("created") or ""
    try:
        parsed = datetime.fromisoformat(created.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def group_material_usage_duplicates(records: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Group material usage rows that share the unique key.

    Returns:
        Mapping of key -> rows (newest first), only for keys with more than one row
    """
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for record in records:
        grouped[duplicate_key(record)].append(record)

    duplicates = {}
    for key, group in grouped.items():
        if len(group) > 1:
            duplicates[key] = sorted(group, key=parse_created, reverse=True)
    return duplicates


def cleanup_duplicate_material_usage(session: requests.Session, dry_run: bool = False) -> int:
    """
    Keep the newest row of every duplicate material usage group.

    Per-row delete failures are logged and skipped.

    Returns:
        Number of deleted rows
    """
    records = pb.get_full_list(session, pb.MATERIAL_USAGE, sort="date,plant_category,plant_unit,shift")
    logger.info(f"Total material usage records: {len(records)}")

    duplicates = group_material_usage_duplicates(records)
    if not duplicates:
        logger.info("No duplicates found")
        return 0

    deleted = 0
    for key, group in duplicates.items():
        keep, *extra = group
        logger.info(f"{key}: keeping {keep['id']} (created {keep.get('created')}), removing {len(extra)}")
        for record in extra:
            if dry_run:
                logger.info(f"  Would delete {record['id']} (created {record.get('created')})")
                continue
            try:
                pb.delete_record(session, pb.MATERIAL_USAGE, record["id"])
                deleted += 1
            except pb.PocketBaseError as e:
                logger.error(f"  Failed to delete {record['id']}: {e}")

    logger.info(f"Cleanup completed: {len(duplicates)} duplicate groups, {deleted} records deleted")
    return deleted


# ============================================================================
# Main Function
# ============================================================================

def main() -> int:
    # Options shared by every subcommand, accepted after the subcommand name
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--dry-run", action="store_true", help="Report without deleting")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(description="Clean up derived operational collections")
    subparsers = parser.add_subparsers(dest="command", required=True)

    orphans_parser = subparsers.add_parser(
        "orphans", parents=[common], help="Delete footer data without hourly data"
    )
    orphans_parser.add_argument("--date", required=True, help="Date to clean up (YYYY-MM-DD)")

    subparsers.add_parser("duplicates", parents=[common], help="Delete duplicate material usage rows")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "orphans":
        try:
            datetime.strptime(args.date, "%Y-%m-%d")
        except ValueError:
            logger.error("Invalid date format. Please use YYYY-MM-DD format.")
            return 1

    try:
        session = pb.create_session()
        if args.command == "orphans":
            cleanup_orphaned_footers(session, args.date, dry_run=args.dry_run)
        else:
            cleanup_duplicate_material_usage(session, dry_run=args.dry_run)
    except (pb.PocketBaseError, requests.RequestException) as e:
        logger.error(f"Cleanup failed: {e}")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
