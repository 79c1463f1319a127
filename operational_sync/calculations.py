"""
Operational Calculations

Pure arithmetic over one parameter setting and one raw hourly record:
daily statistics, per-shift statistics and counter-feeder shift usage.

Raw hourly records come in two formats:
- flat: hour1 .. hour24 fields
- nested: hourly_values mapping hour -> value or {"value": ..., "user_name": ...}
"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

NUMBER_TYPE = "Number"

SHIFT_HOURS = {
    "shift1": [8, 9, 10, 11, 12, 13, 14, 15],
    "shift2": [16, 17, 18, 19, 20, 21, 22],
    "shift3": [23, 24],
    "shift3_cont": [1, 2, 3, 4, 5, 6, 7],
}

# Hour whose reading closes the previous shift; shift3_cont starts from zero
COUNTER_BASELINE_HOUR = {
    "shift1": 7,
    "shift2": 15,
    "shift3": 22,
}

_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_hour_value(value: Any) -> float:
    """
    Parse a stored hour value leniently.

    Numbers pass through. Strings are read by their leading numeric prefix,
    so "12.5 t" gives 12.5. Anything else (None, "", booleans, objects)
    gives NaN.
    """
    if isinstance(value, bool) or value is None:
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(("Infinity", "+Infinity")):
            return math.inf
        if text.startswith("-Infinity"):
            return -math.inf
        match = _NUMERIC_PREFIX.match(text)
        if match:
            return float(match.group(0))
    return math.nan


def unwrap_hour_entry(entry: Any) -> Any:
    if isinstance(entry, dict) and "value" in entry:
        return entry["value"]
    return entry


def get_hour_value(data: Dict[str, Any], hour: int) -> float:
    """Value of one hour (1-24) in either record format, NaN when missing."""
    hourly_values = data.get("hourly_values")
    if isinstance(hourly_values, dict):
        entry = hourly_values.get(hour, hourly_values.get(str(hour)))
        return parse_hour_value(unwrap_hour_entry(entry))

    value = data.get(f"hour{hour}")
    if value is None or value == "":
        return math.nan
    return parse_hour_value(value)


def collect_values(data: Dict[str, Any]) -> List[float]:
    """Every parseable reading of the day, in storage order."""
    hourly_values = data.get("hourly_values")
    if isinstance(hourly_values, dict):
        values = (parse_hour_value(unwrap_hour_entry(v)) for v in hourly_values.values())
    else:
        values = (get_hour_value(data, hour) for hour in range(1, 25))
    return [v for v in values if not math.isnan(v)]


def is_numeric_parameter(param: Dict[str, Any]) -> bool:
    return param.get("data_type") == NUMBER_TYPE


def calculate_parameter_stats(param: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    """
    Daily statistics for one parameter.

    Returns:
        Dictionary with total, avg, min and max, or None when the parameter
        is not numeric, the record is missing or no value parses
    """
    if not is_numeric_parameter(param) or not data:
        return None

    values = collect_values(data)
    if not values:
        return None

    total = sum(values)
    return {
        "total": total,
        "avg": total / len(values),
        "min": min(values),
        "max": max(values),
    }


def calculate_shift_stats(
    param: Dict[str, Any],
    data: Optional[Dict[str, Any]],
    shift_hours: List[int],
) -> Dict[str, float]:
    if not is_numeric_parameter(param) or not data:
        return {"total": 0.0, "avg": 0.0}

    values = [v for v in (get_hour_value(data, hour) for hour in shift_hours) if not math.isnan(v)]
    total = sum(values)
    return {
        "total": total,
        "avg": total / len(values) if values else 0.0,
    }


def max_of_hours(data: Dict[str, Any], hours: List[int]) -> float:
    values = [v for v in (get_hour_value(data, hour) for hour in hours) if not math.isnan(v)]
    return max(values) if values else 0.0


def calculate_shift_counter(param: Dict[str, Any], data: Optional[Dict[str, Any]], shift_key: str) -> float:
    """
    Material usage of a shift from a cumulative counter feeder.

    The highest reading inside the shift minus the reading of the hour that
    closed the previous shift. shift3_cont opens the day, so its counter is
    the highest reading alone.

    Args:
        param: Parameter setting
        data: Raw hourly record
        shift_key: shift1, shift2, shift3 or shift3_cont

    Returns:
        Counter difference, 0 for non-numeric parameters or unknown shifts
    """
    if not is_numeric_parameter(param) or not data or shift_key not in SHIFT_HOURS:
        return 0.0

    shift_max = max_of_hours(data, SHIFT_HOURS[shift_key])
    baseline_hour = COUNTER_BASELINE_HOUR.get(shift_key)
    if baseline_hour is None:
        return shift_max

    previous = get_hour_value(data, baseline_hour)
    return shift_max - (0.0 if math.isnan(previous) else previous)


def round2(value: Optional[float]) -> Optional[float]:
    """
    Round to two decimals, ties away from zero.

    NaN and infinities become None: they have no JSON form and never
    compare equal to a stored row.
    """
    if value is None or not math.isfinite(value):
        return None
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
