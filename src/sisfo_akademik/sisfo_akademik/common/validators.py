from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..core.constants import MAX_SCORE, MIN_SCORE
from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date, parse_iso_datetime, to_naive_utc


def require_non_empty(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value.strip()


def require_uuid(value: Any, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid {field_name}", detail=f"{field_name} must be a valid UUID")


def optional_uuid(value: Any, field_name: str) -> Optional[uuid.UUID]:
    if value is None or value == "":
        return None
    return require_uuid(value, field_name)


def require_number(value: Any, field_name: str) -> float:
    # bool is an int subclass; "true" is not a score.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number")
    return float(value)


def require_score(value: Any, field_name: str = "score") -> float:
    score = require_number(value, field_name)
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(f"{field_name} must be between {MIN_SCORE:g} and {MAX_SCORE:g}")
    return score


def optional_coordinate(value: Any, field_name: str, *, limit: float) -> Optional[float]:
    if value is None:
        return None
    v = require_number(value, field_name)
    if v < -limit or v > limit:
        raise ValidationError(f"{field_name} out of range")
    return v


def require_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    v = value.strip()
    try:
        if len(v) == 10:
            return parse_iso_date(v)
        return to_naive_utc(parse_iso_datetime(v)).date()
    except ValueError:
        raise ValidationError(f"Invalid {field_name}", detail=f"{field_name} must be YYYY-MM-DD")


def require_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return to_naive_utc(parse_iso_datetime(value))
    except ValueError:
        raise ValidationError(f"Invalid {field_name}", detail=f"{field_name} must be an ISO-8601 timestamp")


def require_mapping(value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValidationError("Invalid Input", detail="request body must be a JSON object")
    return value
