"""
services/type_inference.py
--------------------------
Turns loosely-typed JSON values into concrete scalars that a database
driver can bind as query parameters.

Precedence is fixed and must not be reordered:
    numbers:  int32 -> int64 -> float64 -> raw text
    strings:  datetime -> int32 -> int64 -> float64 -> bool -> UUID -> verbatim
"""

import math
import re
import uuid
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from models.parameters import JsonKind, JsonValue, TypedScalar

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")
_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")

# distinct in year, month and day
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


def infer(value: JsonValue) -> TypedScalar:
    """
    Infer the concrete type of a JSON-origin value.

    Args:
        value: The wrapped JSON value.

    Returns:
        None, bool, int, float, str, datetime or uuid.UUID. Arrays and
        objects come back as their compact JSON text.
    """
    kind = value.kind
    if kind is JsonKind.NULL:
        return None
    if kind is JsonKind.BOOL:
        return bool(value.raw)
    if kind is JsonKind.NUMBER:
        return _infer_number(value)
    if kind is JsonKind.STRING:
        return infer_from_string(value.raw)
    # arrays and objects stay opaque
    return value.raw_text()


def _infer_number(value: JsonValue) -> TypedScalar:
    raw = value.raw
    if isinstance(raw, int):
        if INT32_MIN <= raw <= INT32_MAX:
            return raw
        if INT64_MIN <= raw <= INT64_MAX:
            return raw
        as_float = _to_float(raw)
        return as_float if as_float is not None else str(raw)
    as_float = _to_float(raw)
    return as_float if as_float is not None else value.raw_text()


def infer_from_string(text: str) -> TypedScalar:
    """Apply the string precedence rules to a single value."""
    if not text:
        return text

    parsed_date = _parse_datetime(text)
    if parsed_date is not None:
        return parsed_date

    if _INT_RE.match(text):
        number = int(text)
        if INT32_MIN <= number <= INT32_MAX:
            return number
        if INT64_MIN <= number <= INT64_MAX:
            return number

    if _FLOAT_RE.match(text):
        as_float = _to_float(text)
        if as_float is not None:
            return as_float

    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    try:
        return uuid.UUID(text.strip())
    except ValueError:
        pass

    return text


def _parse_datetime(text: str) -> Optional[datetime]:
    """
    Read ``text`` as a datetime only when it names a full calendar date.

    ISO 8601 is tried first. Otherwise the text is parsed against two
    different default dates: if year, month or day came from the default
    the text is a time or a shorthand ("10:30", "3m", "5h", "T1") and is
    not a date.
    """
    # Plain numbers ("100", "12.5") and digit-free words ("Monday") are
    # never read as dates.
    if _FLOAT_RE.match(text) or not any(ch.isdigit() for ch in text):
        return None
    stripped = text.strip()
    try:
        return date_parser.isoparse(stripped)
    except (ValueError, OverflowError):
        pass
    try:
        first = date_parser.parse(stripped, default=_DEFAULT_A)
        second = date_parser.parse(stripped, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        return None
    return first


def _to_float(raw: Any) -> Optional[float]:
    try:
        number = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None
