"""
Plant Data Generator - Cement Mill Hourly Readings

Generates parameter settings and hourly readings (ccr_parameter_data) for a
set of cement mill units, with realistic gaps and quality issues so the
sync and validation jobs have something to chew on.

All logic uses functions - no classes needed for data generation.

Generated Parameters (per unit):
- Counter feeders for every material (cumulative tonnage, reset at hour 1)
- Process parameters (feed rate, motor current, separator speed, outlet
  temperature) within their min/max limits

Data Quality Issues Introduced:
- Missing hour values (3% of hours)
- Out-of-range process readings (4% of hours)
- Text entries instead of numbers (1% of hours)

Usage:
    python -m data_generator.generator --start 2024-05-01 --days 7 > sample.json
    python -m data_generator.generator --units "Cement Mill 220" --days 3 --seed
"""

import sys
import json
import random
import string
import logging
import argparse
from datetime import date, datetime, timedelta
from typing import Any, Dict, List

import requests
from faker import Faker
from dotenv import load_dotenv

from pocketbase_api import client as pb
from operational_sync.calculations import NUMBER_TYPE, SHIFT_HOURS

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Faker with Indonesian locale
fake = Faker('id_ID')

# Constants
DEFAULT_UNITS = ["Cement Mill 220", "Cement Mill 320", "Cement Mill 419"]
PLANT_CATEGORY = "CM"
RECORD_ID_ALPHABET = string.ascii_lowercase + string.digits

# Hourly tonnage range per counter feeder
COUNTER_FEEDERS = {
    "Counter Feeder Clinker (ton)": (60.0, 90.0),
    "Counter Feeder Gypsum (ton)": (3.0, 5.0),
    "Counter Feeder Limestone (ton)": (4.0, 8.0),
    "Counter Feeder Trass (ton)": (8.0, 15.0),
    "Counter Feeder Flyash (ton)": (5.0, 10.0),
    "Counter Feeder Fine Trass (ton)": (2.0, 4.0),
    "Counter Feeder CKD (ton)": (0.5, 2.0),
}

PROCESS_PARAMETERS = {
    "Feed Rate (tph)": (90.0, 130.0),
    "Motor Current (A)": (180.0, 240.0),
    "Separator Speed (rpm)": (900.0, 1200.0),
    "Outlet Temperature (C)": (95.0, 115.0),
}

MISSING_RATE = 0.03
OUT_OF_RANGE_RATE = 0.04
TEXT_ENTRY_RATE = 0.01

_generator_stats = {
    "records": 0,
    "missing_values": 0,
    "out_of_range": 0,
    "text_entries": 0,
}


# ============================================================================
# Helper Functions
# ============================================================================

def generate_record_id() -> str:
    """15-character lowercase alphanumeric id, the PocketBase id format."""
    return "".join(random.choices(RECORD_ID_ALPHABET, k=15))


def shift_of_hour(hour: int) -> str:
    for shift, hours in SHIFT_HOURS.items():
        if hour in hours:
            return shift
    raise ValueError(f"Hour out of range: {hour}")


def initialize_operators(per_shift: int = 2) -> Dict[str, List[str]]:
    """Operator crew names per shift."""
    return {shift: [fake.name() for _ in range(per_shift)] for shift in SHIFT_HOURS}


# ============================================================================
# Core Functions
# ============================================================================

def initialize_parameter_settings(units: List[str]) -> List[Dict[str, Any]]:
    """
    Create parameter settings for every unit.

    Args:
        units: Plant unit names

    Returns:
        List of parameter setting dictionaries
    """
    settings = []
    for unit in units:
        for name in COUNTER_FEEDERS:
            settings.append({
                "id": generate_record_id(),
                "parameter": name,
                "data_type": NUMBER_TYPE,
                "unit": unit,
                "category": PLANT_CATEGORY,
            })
        for name, (low, high) in PROCESS_PARAMETERS.items():
            settings.append({
                "id": generate_record_id(),
                "parameter": name,
                "data_type": NUMBER_TYPE,
                "unit": unit,
                "category": PLANT_CATEGORY,
                "min_value": low,
                "max_value": high,
            })

    logger.info(f"Initialized {len(settings)} parameter settings for {len(units)} units")
    return settings


def generate_counter_values(param: Dict[str, Any]) -> Dict[int, Any]:
    low, high = COUNTER_FEEDERS[param["parameter"]]
    values: Dict[int, Any] = {}
    running = 0.0
    for hour in range(1, 25):
        running += random.uniform(low, high)
        values[hour] = round(running, 2)
    return values


def generate_process_values(param: Dict[str, Any]) -> Dict[int, Any]:
    low, high = param["min_value"], param["max_value"]
    values: Dict[int, Any] = {}
    for hour in range(1, 25):
        value = random.uniform(low, high)
        if random.random() < OUT_OF_RANGE_RATE:
            offset = random.uniform(0.1, 0.5) * (high - low)
            value = high + offset if random.random() < 0.5 else low - offset
            _generator_stats["out_of_range"] += 1
        values[hour] = round(value, 2)
    return values


def introduce_quality_issues(values: Dict[int, Any]) -> Dict[int, Any]:
    for hour in values:
        roll = random.random()
        if roll < MISSING_RATE:
            values[hour] = None
            _generator_stats["missing_values"] += 1
        elif roll < MISSING_RATE + TEXT_ENTRY_RATE:
            values[hour] = random.choice(["-", "n/a", "off"])
            _generator_stats["text_entries"] += 1
    return values


def generate_hourly_record(
    param: Dict[str, Any],
    date_str: str,
    operators: Dict[str, List[str]],
) -> Dict[str, Any]:
    """
    Generate one ccr_parameter_data record in the flat hour1..hour24 format.

    Args:
        param: Parameter setting
        date_str: Date in YYYY-MM-DD format
        operators: Operator names per shift

    Returns:
        Record dictionary
    """
    if param["parameter"] in COUNTER_FEEDERS:
        values = generate_counter_values(param)
    else:
        values = generate_process_values(param)
    values = introduce_quality_issues(values)

    record: Dict[str, Any] = {
        "parameter_id": param["id"],
        "date": date_str,
        "name": param["parameter"],
        "plant_unit": param["unit"],
    }
    for hour in range(1, 25):
        value = values[hour]
        record[f"hour{hour}"] = value
        record[f"hour{hour}_user"] = random.choice(operators[shift_of_hour(hour)]) if value is not None else ""

    _generator_stats["records"] += 1
    return record


def generate_day(
    settings: List[Dict[str, Any]],
    day: date,
    operators: Dict[str, List[str]],
) -> List[Dict[str, Any]]:
    date_str = day.isoformat()
    return [generate_hourly_record(param, date_str, operators) for param in settings]


def seed_backend(
    session: requests.Session,
    settings: List[Dict[str, Any]],
    dates: List[date],
    operators: Dict[str, List[str]],
) -> Dict[str, int]:
    """
    Write parameter settings and hourly records to PocketBase.

    Failures are logged and counted; seeding continues.

    Returns:
        Dictionary with created and failed counts
    """
    result = {"created": 0, "failed": 0}

    for param in settings:
        if pb.safe_api_call(pb.create_record, session, pb.PARAMETER_SETTINGS, param) is None:
            result["failed"] += 1
        else:
            result["created"] += 1

    for day in dates:
        for record in generate_day(settings, day, operators):
            if pb.safe_api_call(pb.create_record, session, pb.PARAMETER_DATA, record) is None:
                result["failed"] += 1
            else:
                result["created"] += 1
        logger.info(f"Seeded {day.isoformat()}")

    return result


def get_statistics() -> Dict[str, int]:
    return _generator_stats.copy()


def print_statistics():
    """Print data quality issue statistics to logger."""
    stats = get_statistics()
    total_hours = stats["records"] * 24
    if total_hours == 0:
        return

    logger.info("=" * 60)
    logger.info("Generated Data Statistics")
    logger.info("=" * 60)
    logger.info(f"Records generated: {stats['records']}")
    for issue in ("missing_values", "out_of_range", "text_entries"):
        logger.info(f"{issue}: {stats[issue]} ({stats[issue] / total_hours * 100:.1f}% of hours)")
    logger.info("=" * 60)


# ============================================================================
# Main Function
# ============================================================================

def main() -> int:
    parser = argparse.ArgumentParser(description="Generate synthetic hourly plant readings")
    parser.add_argument("--units", nargs="+", default=DEFAULT_UNITS, help="Plant unit names")
    parser.add_argument("--start", default=None, help="First date (YYYY-MM-DD, default: today)")
    parser.add_argument("--days", type=int, default=1, help="Number of days to generate")
    parser.add_argument("--random-seed", type=int, help="Seed for reproducible output")
    parser.add_argument("--seed", action="store_true", help="Write generated data to PocketBase (default: print JSON)")
    args = parser.parse_args()

    if args.random_seed is not None:
        random.seed(args.random_seed)
        Faker.seed(args.random_seed)

    try:
        start = datetime.strptime(args.start, "%Y-%m-%d").date() if args.start else date.today()
    except ValueError:
        logger.error(f"Invalid start date: {args.start} (expected YYYY-MM-DD)")
        return 1

    dates = [start + timedelta(days=offset) for offset in range(max(args.days, 1))]
    settings = initialize_parameter_settings(args.units)
    operators = initialize_operators()

    if args.seed:
        try:
            session = pb.create_session()
        except (pb.PocketBaseError, requests.RequestException) as e:
            logger.error(f"Cannot connect to PocketBase: {e}")
            return 2
        result = seed_backend(session, settings, dates, operators)
        logger.info(f"Seeding finished: {result['created']} created, {result['failed']} failed")
    else:
        output = {
            "parameter_settings": settings,
            "ccr_parameter_data": [record for day in dates for record in generate_day(settings, day, operators)],
        }
        print(json.dumps(output, indent=2))

    print_statistics()
    return 0


if __name__ == "__main__":
    sys.exit(main())
