#!/usr/bin/env python3
"""
PocketBase Collection Initialization Script

This script creates the collections used by the operational sync
(parameter settings, hourly data, footer data, material usage) on a
PocketBase server. It reads collection definitions from
collections_config.json and creates every collection that does not exist
yet, including the unique index that keeps material usage rows one per
(date, plant_category, plant_unit, shift).

Usage:
    python -m pb_schema.init_collections [--url http://127.0.0.1:8090/] [--config-file collections_config.json] [--verbose]

Environment Variables:
    POCKETBASE_URL: PocketBase server URL
    POCKETBASE_EMAIL, POCKETBASE_PASSWORD: Superuser credentials (required)

Exit Codes:
    0: Success
    1: Configuration error
    2: PocketBase connection error
    3: Collection creation error
"""

import argparse
import copy
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Tuple

import requests

from pocketbase_api import client as pb

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Constants
DEFAULT_CONFIG_FILE = "collections_config.json"
MAX_RETRIES = 30
RETRY_INTERVAL = 2  # seconds

AUTODATE_FIELDS = [
    {"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False},
    {"name": "updated", "type": "autodate", "onCreate": True, "onUpdate": True},
]


def load_config(config_file: Path) -> Dict:
    """
    Load collection configuration from JSON file.

    Args:
        config_file: Path to JSON configuration file

    Returns:
        Dictionary containing collection configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        json.JSONDecodeError: If config file is invalid JSON
        ValueError: If config structure is invalid
    """
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        config = json.load(f)

    if "collections" not in config:
        raise ValueError("Configuration file must contain 'collections' key")

    if not isinstance(config["collections"], list):
        raise ValueError("'collections' must be a list")

    for collection in config["collections"]:
        if not collection.get("name"):
            raise ValueError("Every collection needs a 'name'")

    logger.debug(f"Loaded configuration from {config_file}: {len(config['collections'])} collections")
    return config


def wait_for_backend(
    session: requests.Session, max_retries: int = MAX_RETRIES, retry_interval: float = RETRY_INTERVAL
) -> bool:
    """
    Wait for PocketBase to answer its health endpoint.

    Args:
        session: PocketBase session
        max_retries: Maximum number of attempts
        retry_interval: Seconds to wait between attempts

    Returns:
        True if PocketBase is ready, False otherwise
    """
    logger.info("Waiting for PocketBase to be ready...")

    for attempt in range(1, max_retries + 1):
        if pb.check_health(session):
            logger.info("PocketBase is ready!")
            return True
        if attempt < max_retries:
            logger.info(f"Waiting... ({attempt}/{max_retries})")
            time.sleep(retry_interval)

    logger.error(f"PocketBase not ready after {max_retries} attempts")
    return False


def build_collection_body(collection_config: Dict[str, Any]) -> Dict[str, Any]:
    """Request body for POST /api/collections, with created/updated autodate fields."""
    body = copy.deepcopy(collection_config)
    body.setdefault("type", "base")
    fields = body.setdefault("fields", [])
    existing = {field["name"] for field in fields}
    for field in AUTODATE_FIELDS:
        if field["name"] not in existing:
            fields.append(dict(field))
    return body


def collection_exists(session: requests.Session, name: str) -> bool:
    try:
        pb.request(session, "GET", f"api/collections/{name}")
        return True
    except pb.PocketBaseError as e:
        if e.status == 404:
            return False
        raise


def create_collections(session: requests.Session, collections: List[Dict[str, Any]]) -> Tuple[int, int]:
    """
    Create collections from configuration.

    Existing collections are left untouched and count as successes.

    Args:
        session: Authenticated PocketBase session
        collections: List of collection configurations

    Returns:
        Tuple of (success_count, failure_count)
    """
    success_count = 0
    failure_count = 0

    for collection_config in collections:
        name = collection_config["name"]
        try:
            if collection_exists(session, name):
                logger.warning(f"⚠ Collection '{name}' already exists (skipping)")
                success_count += 1
                continue

            logger.info(f"Creating collection: {name}")
            body = build_collection_body(collection_config)
            logger.debug(f"  Fields: {[f['name'] for f in body['fields']]}, Indexes: {body.get('indexes', [])}")
            pb.request(session, "POST", "api/collections", json_body=body)
            logger.info(f"✓ Collection '{name}' created successfully")
            success_count += 1
        except pb.PocketBaseError as e:
            logger.error(f"✗ Failed to create collection '{name}': {e}")
            if e.data:
                logger.debug(f"  Response: {e.data}")
            failure_count += 1

    return success_count, failure_count


def list_collections(session: requests.Session) -> List[str]:
    try:
        result = pb.request(session, "GET", "api/collections", params={"perPage": 200})
    except pb.PocketBaseError as e:
        logger.error(f"Error listing collections: {e}")
        return []
    return sorted(item["name"] for item in (result or {}).get("items", []))


def main() -> int:
    """
    Main function to initialize PocketBase collections.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        description="Initialize PocketBase collections for the operational sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default=pb.POCKETBASE_URL,
        help=f"PocketBase URL (default: {pb.POCKETBASE_URL})",
    )
    parser.add_argument(
        "--config-file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to collections configuration JSON file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--skip-wait",
        action="store_true",
        help="Skip waiting for PocketBase to be ready",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config_file = Path(args.config_file)
    if not config_file.is_absolute():
        config_file = Path(__file__).parent / config_file

    logger.info("=" * 60)
    logger.info("Initializing PocketBase Collections")
    logger.info(f"PocketBase: {args.url}")
    logger.info("=" * 60)

    try:
        config = load_config(config_file)
    except FileNotFoundError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if not pb.POCKETBASE_EMAIL or not pb.POCKETBASE_PASSWORD:
        logger.error("POCKETBASE_EMAIL and POCKETBASE_PASSWORD must be set to create collections")
        return 1

    try:
        session = pb.create_session(args.url, email="", password="")
        if not args.skip_wait and not wait_for_backend(session):
            logger.error("PocketBase is not available. Please ensure it is running.")
            return 2
        pb.authenticate(session, pb.POCKETBASE_EMAIL, pb.POCKETBASE_PASSWORD)
    except (pb.PocketBaseError, requests.RequestException) as e:
        logger.error(f"Failed to connect to PocketBase: {e}")
        return 2

    success_count, failure_count = create_collections(session, config["collections"])

    logger.info("=" * 60)
    logger.info("Listing all collections:")
    for name in list_collections(session):
        logger.info(f"  - {name}")
    logger.info("=" * 60)

    if failure_count > 0:
        logger.warning(f"Completed with {failure_count} failure(s)")
        return 3

    logger.info(f"Done! {success_count} collections initialized successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
