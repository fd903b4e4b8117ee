"""
Convert event/audit metadata into values a JSON column accepts
"""
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel

from attendance_engine.utils.datetime_utils import ensure_utc


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively sanitize a value for JSON storage (attendance_events.meta_json,
    audit_logs.meta_json, finalization_runs.errors).

    Datetimes are written as UTC ISO-8601, enums as their value, Decimals as
    floats; dataclasses and pydantic models are expanded first.
    """
    # str-based enums must be unwrapped before the plain str check
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    if is_dataclass(value) and not isinstance(value, type):
        return sanitize_for_json(asdict(value))
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_for_json(item) for item in value]
    return str(value)
