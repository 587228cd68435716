"""
services/parameter_normalizer.py
--------------------------------
Converts a caller-supplied name -> value map into the parameter map handed
to the storage layer:

    1. every name gets a leading ``@``;
    2. names must be ``@`` followed by word characters only;
    3. JSON-origin values are typed via ``services.type_inference``;
    4. optionally, listed fields are replaced by their BCrypt hash.
"""

import re
from typing import Any, Mapping, Optional, Union

from errors import InvalidArgumentError
from models.parameters import JsonValue, ParamKind, json_parameters, kind_of
from security.hashing import FieldList, hash_listed_fields, parse_field_list
from services.type_inference import infer

PARAMETER_NAME_RE = re.compile(r"@?\w+")

_JSON_NATIVE = (type(None), bool, int, float, str, list, dict)


def prefixed(name: str) -> str:
    """Return the name with exactly one leading ``@`` ensured."""
    return name if name.startswith("@") else "@" + name


def parameter_kinds(params: Mapping[str, Any]) -> dict[str, ParamKind]:
    """
    Tag each normalized parameter with its kind.

    Values are never included, so the result is safe to log even when some
    parameters hold secrets or hashes.
    """
    return {name: kind_of(value) for name, value in params.items()}


def wrap_untyped(raw: Union[str, bytes, Mapping[str, Any], None]) -> dict[Any, Any]:
    """
    Mark an untyped parameter bag as JSON-origin.

    Accepts JSON object text or an already-decoded mapping. JSON-native
    values are wrapped in JsonValue so they go through type inference;
    anything else is kept as a typed value.

    Raises:
        InvalidArgumentError: If the bag is not a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            return json_parameters(raw)
        except ValueError as e:
            raise InvalidArgumentError(f"parameters must be a JSON object: {e}", field="parameters") from e
    if not isinstance(raw, Mapping):
        raise InvalidArgumentError("parameters must be a JSON object", field="parameters")
    return {
        name: JsonValue(value) if isinstance(value, _JSON_NATIVE) else value
        for name, value in raw.items()
    }


def normalize_parameters(
    raw: Optional[Mapping[str, Any]],
    encrypt_fields: FieldList = None,
    *,
    cost: Optional[int] = None,
) -> dict[str, Any]:
    """
    Build a validated, provider-neutral parameter map.

    Args:
        raw: Caller parameters. Values wrapped in JsonValue are type-inferred,
            anything else passes through unchanged.
        encrypt_fields: Fields whose string values must be BCrypt-hashed.
        cost: BCrypt work factor override.

    Returns:
        Dict keyed by ``@name``.

    Raises:
        InvalidArgumentError: If a parameter name is not ``@?\\w+``.
    """
    result: dict[str, Any] = {}
    for name, value in (raw or {}).items():
        if not isinstance(name, str):
            raise InvalidArgumentError(f"invalid parameter name: {name!r}", field=str(name))
        key = prefixed(name)
        if not PARAMETER_NAME_RE.fullmatch(key):
            raise InvalidArgumentError(f"invalid parameter name: {key}", field=name)
        result[key] = infer(value) if isinstance(value, JsonValue) else value

    fields = parse_field_list(encrypt_fields)
    if fields:
        hash_listed_fields(result, fields, cost=cost, key=prefixed)
    return result
