"""
security/hashing.py
-------------------
One-way hashing of secrets with BCrypt.

Hashing is intentionally slow (cost factor 12 by default, roughly
100-150 ms per hash). Async callers should run it through
``asyncio.to_thread`` so it stays off the event loop.
"""

from typing import Any, Callable, Iterable, Optional, Union

import bcrypt

import config
from errors import InvalidArgumentError, OperationalError

MIN_COST = 4
MAX_COST = 31
MAX_SECRET_BYTES = 72
_BCRYPT_PREFIX = "$2"

FieldList = Union[str, Iterable[str], None]


def looks_hashed(value: str) -> bool:
    """True when the value already carries a BCrypt prefix (``$2a$``, ``$2b$``...)."""
    return isinstance(value, str) and value.startswith(_BCRYPT_PREFIX)


def parse_field_list(fields: FieldList) -> list[str]:
    """
    Normalize an encrypt-field list.

    Accepts a comma-separated string (``"password, pin"``) or any iterable of
    names. Blank entries are dropped and duplicates (ignoring case) collapse
    to their first spelling.
    """
    if fields is None:
        return []
    items = fields.split(",") if isinstance(fields, str) else fields
    seen: dict[str, str] = {}
    for item in items:
        if item is None:
            continue
        name = str(item).strip()
        if name:
            seen.setdefault(name.casefold(), name)
    return list(seen.values())


def _check_cost(cost: int) -> int:
    if not isinstance(cost, int) or isinstance(cost, bool) or not MIN_COST <= cost <= MAX_COST:
        raise InvalidArgumentError(
            f"BCrypt cost must be between {MIN_COST} and {MAX_COST}, got {cost!r}",
            field="cost",
        )
    return cost


def hash_secret(secret: str, cost: Optional[int] = None) -> str:
    """
    Hash a plaintext secret.

    Args:
        secret: The plaintext; must not be blank.
        cost: BCrypt work factor (defaults to ``config.BCRYPT_COST``).

    Returns:
        The BCrypt hash as text.

    Raises:
        InvalidArgumentError: Blank secret or cost out of range.
        OperationalError: The hashing library failed.
    """
    if not secret or not secret.strip():
        raise InvalidArgumentError("value to hash must not be empty", field="secret")
    rounds = _check_cost(config.BCRYPT_COST if cost is None else cost)
    encoded = secret.encode("utf-8")
    if len(encoded) > MAX_SECRET_BYTES:
        raise InvalidArgumentError(f"value to hash must be at most {MAX_SECRET_BYTES} bytes", field="secret")
    try:
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("ascii")
    except ValueError as e:
        raise OperationalError(f"BCrypt hashing failed with cost {rounds}", operation="hash_secret") from e


def verify_secret(secret: str, hashed: str) -> bool:
    """
    Compare a plaintext secret against a stored BCrypt hash in constant time.

    A malformed stored hash verifies as False rather than raising.

    Raises:
        InvalidArgumentError: If either argument is blank.
    """
    if not secret or not secret.strip():
        raise InvalidArgumentError("value to verify must not be empty", field="secret")
    if not hashed or not hashed.strip():
        raise InvalidArgumentError("stored hash must not be empty", field="hash")
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), hashed.strip().encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(hashed: Optional[str], desired_cost: Optional[int] = None) -> bool:
    """
    Tell whether a stored hash was produced with a lower cost than desired.

    Anything that does not look like a BCrypt hash needs rehashing.
    """
    target = config.BCRYPT_COST if desired_cost is None else desired_cost
    if not hashed or len(hashed) < 7 or not looks_hashed(hashed):
        return True
    # format: $2b$12$<salt+digest>
    cost_part = hashed[4:6]
    if not cost_part.isdigit():
        return True
    return int(cost_part) < target


def hash_listed_fields(
    values: dict[str, Any],
    fields: Iterable[str],
    *,
    cost: Optional[int] = None,
    key: Callable[[str], str] = lambda name: name,
) -> dict[str, Any]:
    """
    Replace the listed entries of ``values`` with their BCrypt hash, in place.

    Field names match keys ignoring case (``key`` maps a field name to the
    key spelling, e.g. adding an ``@`` prefix). Missing fields, non-string
    or blank values and values that already look hashed are left alone.

    Returns:
        The same dict, for chaining.
    """
    by_folded_name = {k.casefold(): k for k in values}
    for field in fields:
        actual = by_folded_name.get(key(field).casefold())
        if actual is None:
            continue
        value = values[actual]
        if isinstance(value, str) and value.strip() and not looks_hashed(value):
            values[actual] = hash_secret(value, cost)
    return values
