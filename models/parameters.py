"""
models/parameters.py
--------------------
Parameter values as they travel from a JSON request body to the storage layer.

A value decoded from JSON is wrapped in ``JsonValue`` so the normalizer knows
it still needs type inference. Anything else is treated as an already-typed
native scalar and passed through untouched.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union


class JsonKind(str, Enum):
    """Shape of a decoded JSON value."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


class ParamKind(str, Enum):
    """Tag of a typed query parameter after inference."""
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    DATETIME = "datetime"
    UUID = "uuid"


@dataclass(frozen=True)
class JsonValue:
    """
    A value still carrying its JSON provenance.

    Attributes:
        raw: The value as produced by ``json.loads`` (dict, list, str, int,
            float, bool or None).
    """
    raw: Any

    @property
    def kind(self) -> JsonKind:
        raw = self.raw
        if raw is None:
            return JsonKind.NULL
        # bool before number: bool is a subclass of int
        if isinstance(raw, bool):
            return JsonKind.BOOL
        if isinstance(raw, (int, float)):
            return JsonKind.NUMBER
        if isinstance(raw, str):
            return JsonKind.STRING
        if isinstance(raw, list):
            return JsonKind.ARRAY
        if isinstance(raw, dict):
            return JsonKind.OBJECT
        raise TypeError(f"Not a JSON value: {type(raw).__name__}")

    def raw_text(self) -> str:
        """Compact JSON text of the value."""
        return json.dumps(self.raw, ensure_ascii=False, separators=(",", ":"))


TypedScalar = Union[None, bool, int, float, str, datetime, uuid.UUID]


def kind_of(value: TypedScalar) -> ParamKind:
    """Return the tag of an already-typed scalar."""
    if value is None:
        return ParamKind.NULL
    if isinstance(value, bool):
        return ParamKind.BOOL
    if isinstance(value, int):
        return ParamKind.INT
    if isinstance(value, float):
        return ParamKind.FLOAT
    if isinstance(value, datetime):
        return ParamKind.DATETIME
    if isinstance(value, uuid.UUID):
        return ParamKind.UUID
    return ParamKind.STRING


def json_parameters(payload: Union[str, bytes, Mapping[str, Any], None]) -> dict[str, JsonValue]:
    """
    Decode a JSON object into a parameter bag of ``JsonValue`` entries.

    Args:
        payload: JSON text, or a mapping already produced by ``json.loads``.

    Returns:
        Ordered dict of name -> JsonValue. ``None`` gives an empty dict.

    Raises:
        ValueError: If the payload is not a JSON object.
    """
    if payload is None:
        return {}
    decoded: Optional[Any] = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    if not isinstance(decoded, Mapping):
        raise ValueError("JSON parameters must be an object")
    return {str(name): JsonValue(value) for name, value in decoded.items()}
