"""
security/table_policy.py
------------------------
Forbidden-table policy for the generic CRUD and query endpoints.
Any table not on the blacklist is allowed (default-allow).
"""

from typing import Iterable, Iterator, Optional, Protocol

import config
from utils.logger import get_logger

logger = get_logger(__name__)


class ForbiddenTableSet:
    """
    Immutable, case-insensitive set of table names.

    Built once at startup and shared by reference; there is no way to
    mutate it after construction.
    """

    __slots__ = ("_names", "_folded")

    def __init__(self, names: Optional[Iterable[str]] = None):
        cleaned: dict[str, str] = {}
        for name in names or ():
            if name is None or not str(name).strip():
                continue
            text = str(name).strip()
            cleaned.setdefault(text.casefold(), text)
        self._names: tuple[str, ...] = tuple(cleaned.values())
        self._folded: frozenset[str] = frozenset(cleaned)

    def __contains__(self, table_name: object) -> bool:
        if not isinstance(table_name, str):
            return False
        return table_name.strip().casefold() in self._folded

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"ForbiddenTableSet({list(self._names)!r})"


class TableAccessPolicy(Protocol):
    """Decides whether a table may be exposed through the generic operations."""

    def is_allowed(self, table_name: str) -> bool:
        ...


class ConfiguredTableAccessPolicy:
    """
    Blacklist policy backed by the FORBIDDEN_TABLES setting.

    Behavior:
        - Blank or whitespace table names are never allowed.
        - Everything else is allowed unless it is on the forbidden list.
        - Comparison ignores case.
    """

    def __init__(self, forbidden: Optional[Iterable[str]] = None):
        self._forbidden = forbidden if isinstance(forbidden, ForbiddenTableSet) else ForbiddenTableSet(forbidden)

    @classmethod
    def from_config(cls) -> "ConfiguredTableAccessPolicy":
        policy = cls(config.FORBIDDEN_TABLES)
        logger.info(f"Table policy loaded with {len(policy.forbidden_tables)} forbidden table(s).")
        return policy

    @property
    def forbidden_tables(self) -> ForbiddenTableSet:
        return self._forbidden

    def has_restrictions(self) -> bool:
        return len(self._forbidden) > 0

    def is_allowed(self, table_name: str) -> bool:
        if not table_name or not table_name.strip():
            return False
        return table_name not in self._forbidden
