from __future__ import annotations

import logging
import math
import re
import warnings
from datetime import date, datetime, time
from typing import Any

import numpy as np
import pandas as pd

from ..models.schema import BOOLEAN_FIELDS, TIMESTAMP_FIELDS

"""Cell value normalization.

normalize_value() turns whatever the spreadsheet library hands back for a
cell into the canonical value the validator and importer work with:

- null markers (empty, whitespace, \\N, 1900 placeholder dates) -> None
- boolean-coded fields -> bool
- numeric strings -> int / float ("0" -> None)
- time-like fields -> "HH:MM:SS"
- dates -> "YYYY-MM-DD" (timestamp fields keep the time of day)

The format_* helpers are the importer's database formatters. Every function
here is total: bad input degrades to None with a warning instead of raising.
"""

__all__ = [
    "normalize_value",
    "time_from_fraction",
    "format_time",
    "format_date",
    "format_timestamp",
    "parse_datetime",
    "MIN_YEAR",
]

logger = logging.getLogger(__name__)

MIN_YEAR = 1910  # anything older is a spreadsheet placeholder, not a real date

_NULL_STRINGS = {"", "\\N", "01/01/1900", "1900-01-01", "1899-12-31"}
_PLACEHOLDER_DATE = "1900-01-01"
_MIDNIGHT_STRINGS = {"00:00", "00:00:00"}
_TRUE_STRINGS = {"1", "true", "yes"}
_SECONDS_PER_DAY = 86400

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.\d+)?)?$")
# a year before MIN_YEAR needs a standalone 3-4 digit number somewhere in the text
_OLD_YEAR_RE = re.compile(r"(?<!\d)(\d{3,4})(?!\d)")


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def _unwrap(value: Any) -> Any:
    # numpy scalars -> python scalars (pandas hands back np.int64 / np.float64 / np.bool_)
    if isinstance(value, np.generic):
        return value.item()
    return value


def _is_time_field(field_name: str | None) -> bool:
    return bool(field_name) and "time" in field_name.lower()


def _hms(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}:{t.second:02d}"


def time_from_fraction(fraction: float) -> str | None:
    """Convert a day fraction (Excel time encoding) to HH:MM:SS; 0 -> None."""
    if not fraction:
        return None
    seconds = min(round(float(fraction) * _SECONDS_PER_DAY), _SECONDS_PER_DAY - 1)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _looks_like_old_date(text: str) -> bool:
    m = _ISO_DATE_RE.match(text)
    if m:
        return int(m.group(1)) < MIN_YEAR
    if not any(int(y) < MIN_YEAR for y in _OLD_YEAR_RE.findall(text)):
        return False
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors="coerce")
    return not _is_missing(parsed) and parsed.year < MIN_YEAR


def _normalize_boolean(value: Any) -> bool | None:
    if _is_missing(value):
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        stripped = value.strip()
        if stripped in _NULL_STRINGS:
            return None
        return stripped.lower() in _TRUE_STRINGS
    return False


def _normalize_date(value: date, field_name: str | None) -> str | None:
    if value.year < MIN_YEAR:
        return None
    if isinstance(value, datetime):
        if field_name and field_name.lower() in TIMESTAMP_FIELDS:
            return value.strftime("%Y-%m-%d %H:%M:%S")
        return value.date().isoformat()
    return value.isoformat()


def _normalize_string(text: str, field_name: str | None) -> Any:
    stripped = text.strip()
    if stripped in _NULL_STRINGS or _PLACEHOLDER_DATE in stripped:
        return None
    if stripped in _MIDNIGHT_STRINGS:
        return None
    if _NUMERIC_RE.match(stripped):
        if stripped == "0":
            return None
        number = float(stripped) if "." in stripped else int(stripped)
        if _is_time_field(field_name) and isinstance(number, float) and 0 <= number < 1:
            return time_from_fraction(number)
        return number
    if _looks_like_old_date(stripped):
        return None
    return stripped


def normalize_value(value: Any, field_name: str | None = None) -> Any:
    """Normalize one raw cell value (see module docstring). Never raises."""
    try:
        value = _unwrap(value)
        if _is_missing(value):
            return None
        if field_name and field_name.lower() in BOOLEAN_FIELDS:
            return _normalize_boolean(value)
        if isinstance(value, bool):
            return value

        time_field = _is_time_field(field_name)
        if isinstance(value, pd.Timestamp):
            value = value.to_pydatetime()

        if time_field:
            if isinstance(value, time):
                return None if value == time(0, 0) else _hms(value)
            if isinstance(value, datetime):
                # bare times come back anchored to the spreadsheet epoch
                t = value.time()
                return None if t == time(0, 0) else _hms(t)
            if isinstance(value, (int, float)) and 0 <= value < 1:
                return time_from_fraction(value)

        if isinstance(value, date):
            return _normalize_date(value, field_name)
        if isinstance(value, time):
            return _hms(value)
        if isinstance(value, str):
            return _normalize_string(value, field_name)
        return value
    except Exception as e:
        logger.warning("normalize failed field=%s value=%r: %s", field_name, value, e)
        return None


def format_time(value: Any) -> str | None:
    """Database time formatter: HH:MM:SS or None."""
    value = _unwrap(value)
    if _is_missing(value) or value == "":
        return None
    if isinstance(value, datetime):
        return _hms(value.time())
    if isinstance(value, time):
        return _hms(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 <= value < 1:
            return time_from_fraction(value)
        logger.warning("invalid time value: %r", value)
        return None
    m = _TIME_RE.match(str(value).strip())
    if not m:
        logger.warning("invalid time value: %r", value)
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    seconds = int(m.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        logger.warning("time out of range: %r", value)
        return None
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def parse_datetime(value: Any) -> datetime | None:
    value = _unwrap(value)
    if _is_missing(value) or value == "":
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors="coerce")
    if _is_missing(parsed):
        return None
    return parsed.to_pydatetime()


def format_date(value: Any) -> str | None:
    """Database date formatter: YYYY-MM-DD or None."""
    parsed = parse_datetime(value)
    if parsed is None:
        if not _is_missing(value) and value != "":
            logger.warning("invalid date value: %r", value)
        return None
    if parsed.year < MIN_YEAR:
        logger.warning("date before %d dropped: %r", MIN_YEAR, value)
        return None
    return parsed.date().isoformat()


def format_timestamp(value: Any) -> str | None:
    """Database timestamp formatter: YYYY-MM-DD HH:MM:SS or None."""
    parsed = parse_datetime(value)
    if parsed is None:
        if not _is_missing(value) and value != "":
            logger.warning("invalid timestamp value: %r", value)
        return None
    if parsed.year < MIN_YEAR:
        logger.warning("timestamp before %d dropped: %r", MIN_YEAR, value)
        return None
    return parsed.strftime("%Y-%m-%d %H:%M:%S")
