"""
Hourly Reading Validators

Validates raw hourly parameter records (ccr_parameter_data) against their
parameter settings. All logic uses functions.

Validation Rules:
- Format validation (non-empty hour values must parse as numbers)
- Range validation (value above max_value is HIGH, below min_value is LOW)
- Counter validation (counter feeder readings must not decrease within a shift)

Usage:
    python -m data_quality.validators --date 2024-05-14
"""

import sys
import math
import logging
import argparse
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from pocketbase_api import client as pb
from operational_sync.calculations import (
    SHIFT_HOURS,
    get_hour_value,
    is_numeric_parameter,
    unwrap_hour_entry,
)

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COUNTER_FEEDER_PREFIX = "Counter Feeder"


# ============================================================================
# Validation Result Helpers
# ============================================================================

def create_validation_result(is_valid: bool = True, failure_reasons: List[str] = None) -> Dict[str, Any]:
    """
    Create a validation result dictionary.

    Args:
        is_valid: Whether validation passed
        failure_reasons: List of failure reasons

    Returns:
        Dictionary with is_valid, failure_reasons and anomalies
    """
    return {
        "is_valid": is_valid,
        "failure_reasons": failure_reasons or [],
        "anomalies": [],
    }


def add_failure_reason(result: Dict[str, Any], reason: str):
    result["failure_reasons"].append(reason)
    result["is_valid"] = False


def add_anomaly(result: Dict[str, Any], hour: int, kind: str, value: float, limit: float):
    result["anomalies"].append({"hour": hour, "type": kind, "value": value, "limit": limit})


def raw_hour_entry(data: Dict[str, Any], hour: int) -> Any:
    hourly_values = data.get("hourly_values")
    if isinstance(hourly_values, dict):
        return unwrap_hour_entry(hourly_values.get(hour, hourly_values.get(str(hour))))
    return data.get(f"hour{hour}")


def to_limit(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ============================================================================
# Validation Functions
# ============================================================================

def validate_format(param: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """Non-empty hour values must parse as numbers."""
    result = create_validation_result()
    for hour in range(1, 25):
        raw = raw_hour_entry(data, hour)
        if raw is None or raw == "":
            continue
        if math.isnan(get_hour_value(data, hour)):
            add_failure_reason(result, f"Unparseable value at hour {hour}: {raw!r}")
    return result


def validate_ranges(param: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check readings against the parameter's min_value/max_value.

    Args:
        param: Parameter setting
        data: Raw hourly record

    Returns:
        Validation result with one anomaly per out-of-range hour
    """
    result = create_validation_result()
    min_value = to_limit(param.get("min_value"))
    max_value = to_limit(param.get("max_value"))
    if min_value is None and max_value is None:
        return result

    name = data.get("name") or param.get("parameter")
    unit = param.get("unit", "")
    for hour in range(1, 25):
        value = get_hour_value(data, hour)
        if math.isnan(value):
            continue
        if max_value is not None and value > max_value:
            add_anomaly(result, hour, "HIGH", value, max_value)
            add_failure_reason(result, f"{name} HIGH ({value} {unit}) at hour {hour}:00 (max: {max_value})")
        if min_value is not None and value < min_value:
            add_anomaly(result, hour, "LOW", value, min_value)
            add_failure_reason(result, f"{name} LOW ({value} {unit}) at hour {hour}:00 (min: {min_value})")
    return result


def validate_counter(param: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """Counter feeder readings are cumulative within a shift."""
    result = create_validation_result()
    if not str(param.get("parameter", "")).startswith(COUNTER_FEEDER_PREFIX):
        return result

    for shift, hours in SHIFT_HOURS.items():
        previous = math.nan
        for hour in hours:
            value = get_hour_value(data, hour)
            if math.isnan(value):
                continue
            if not math.isnan(previous) and value < previous:
                add_anomaly(result, hour, "COUNTER_DECREASE", value, previous)
                add_failure_reason(
                    result,
                    f"Counter decreased in {shift} at hour {hour}: {value} < {previous}"
                )
            previous = value
    return result


def validate_hourly_record(param: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Perform every validation on one raw hourly record.

    Non-numeric parameters are always valid.

    Args:
        param: Parameter setting
        data: Raw hourly record

    Returns:
        Validation result dictionary
    """
    result = create_validation_result()
    if not is_numeric_parameter(param):
        return result

    validations = [
        validate_format(param, data),
        validate_ranges(param, data),
        validate_counter(param, data),
    ]

    for validation in validations:
        if not validation["is_valid"]:
            result["failure_reasons"].extend(validation["failure_reasons"])
            result["anomalies"].extend(validation["anomalies"])
            result["is_valid"] = False

    return result


# ============================================================================
# Day Validation
# ============================================================================

def create_metrics() -> Dict[str, Any]:
    return {
        "total_processed": 0,
        "valid_count": 0,
        "invalid_count": 0,
        "unknown_parameter": 0,
        "failure_types": defaultdict(int),
        "by_unit": defaultdict(lambda: {"valid": 0, "invalid": 0}),
        "failures": [],
    }


FAILURE_PREFIXES = {
    "Unparseable value": "FORMAT",
    "Counter decreased": "COUNTER_DECREASE",
}


def failure_type(reason: str) -> str:
    for marker in ("HIGH", "LOW"):
        if f" {marker} " in reason:
            return marker
    for prefix, name in FAILURE_PREFIXES.items():
        if reason.startswith(prefix):
            return name
    return "OTHER"


def validate_records(parameter_settings: List[Dict[str, Any]], records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate a batch of raw records and aggregate quality metrics.

    Args:
        parameter_settings: All parameter settings
        records: Raw hourly records

    Returns:
        Metrics dictionary
    """
    settings_by_id = {p.get("id"): p for p in parameter_settings}
    metrics = create_metrics()

    for record in records:
        param = settings_by_id.get(record.get("parameter_id"))
        if not param:
            metrics["unknown_parameter"] += 1
            continue

        metrics["total_processed"] += 1
        result = validate_hourly_record(param, record)
        unit = param.get("unit") or "unknown"

        if result["is_valid"]:
            metrics["valid_count"] += 1
            metrics["by_unit"][unit]["valid"] += 1
            continue

        metrics["invalid_count"] += 1
        metrics["by_unit"][unit]["invalid"] += 1
        for reason in result["failure_reasons"]:
            metrics["failure_types"][failure_type(reason)] += 1
        metrics["failures"].append({
            "record_id": record.get("id"),
            "parameter_id": param.get("id"),
            "parameter": param.get("parameter"),
            "unit": unit,
            "failure_reasons": result["failure_reasons"],
        })

    return metrics


def validate_day(session: requests.Session, date_str: str) -> Dict[str, Any]:
    parameter_settings = pb.get_full_list(session, pb.PARAMETER_SETTINGS)
    records = pb.get_full_list(
        session, pb.PARAMETER_DATA, filter_expr=f"date={pb.quote_filter_value(date_str)}"
    )
    logger.info(f"Validating {len(records)} hourly records for {date_str}")
    return validate_records(parameter_settings, records)


def print_validation_metrics(metrics: Dict[str, Any]):
    """Print quality metrics to logger."""
    total = metrics["total_processed"]
    if total == 0:
        logger.info("No records validated")
        return

    valid_pct = (metrics["valid_count"] / total) * 100
    invalid_pct = (metrics["invalid_count"] / total) * 100

    logger.info("=" * 60)
    logger.info("Data Quality Metrics")
    logger.info("=" * 60)
    logger.info(f"Total processed: {total}")
    logger.info(f"Valid: {metrics['valid_count']} ({valid_pct:.1f}%)")
    logger.info(f"Invalid: {metrics['invalid_count']} ({invalid_pct:.1f}%)")
    if metrics["unknown_parameter"]:
        logger.info(f"Records without parameter setting: {metrics['unknown_parameter']}")

    logger.info("Failure Types:")
    for name, count in sorted(metrics["failure_types"].items(), key=lambda x: x[1], reverse=True)[:10]:
        logger.info(f"  {name}: {count}")

    logger.info("By Unit:")
    for unit, counts in sorted(metrics["by_unit"].items()):
        logger.info(f"  {unit}: {counts['valid']} valid, {counts['invalid']} invalid")

    logger.info("=" * 60)


# ============================================================================
# Main Function
# ============================================================================

def main() -> int:
    parser = argparse.ArgumentParser(description="Validate hourly plant readings")
    parser.add_argument("--date", required=True, help="Date to validate (YYYY-MM-DD)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every failure reason")
    args = parser.parse_args()

    try:
        datetime.strptime(args.date, "%Y-%m-%d")
    except ValueError:
        logger.error(f"Invalid date: {args.date} (expected YYYY-MM-DD)")
        return 1

    try:
        session = pb.create_session()
        metrics = validate_day(session, args.date)
    except (pb.PocketBaseError, requests.RequestException) as e:
        logger.error(f"Validation failed: {e}")
        return 2

    if args.verbose:
        for failure in metrics["failures"]:
            for reason in failure["failure_reasons"]:
                logger.warning(f"[{failure['unit']}] {reason}")

    print_validation_metrics(metrics)
    return 0


if __name__ == "__main__":
    sys.exit(main())
