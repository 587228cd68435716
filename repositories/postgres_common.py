"""
repositories/postgres_common.py
-------------------------------
Helpers shared by the PostgreSQL repositories: identifier composition,
placeholder rewriting and value adaptation.
"""

import re
from datetime import datetime, time
from typing import Any, Optional

from psycopg2 import extras, sql

from models.records import ResultSet

extras.register_uuid()

_PLACEHOLDER_RE = re.compile(r"(?<![@\w])@(\w+)")


def table_identifier(table: str, schema: Optional[str] = None) -> sql.Identifier:
    """Quoted ``"schema"."table"`` (or just ``"table"``) reference."""
    return sql.Identifier(schema, table) if schema else sql.Identifier(table)


def split_routine_name(name: str, default_schema: str = "public") -> tuple[str, str]:
    """Split ``schema.routine`` into its parts; an unqualified name lives in ``default_schema``."""
    schema, _, routine = name.strip().rpartition(".")
    return (schema.strip() or default_schema), routine.strip()


def adapt_value(value: Any) -> Any:
    """
    Make a typed parameter bindable by psycopg2.

    - dict / list -> JSON
    - naive datetime at exactly midnight -> date
    """
    if isinstance(value, (dict, list)):
        return extras.Json(value)
    if isinstance(value, datetime) and value.tzinfo is None and value.time() == time(0, 0):
        return value.date()
    return value


def to_pyformat(sql_text: str, params: dict[str, Any]) -> tuple[str, Optional[dict[str, Any]]]:
    """
    Rewrite ``@name`` placeholders into psycopg2's ``%(name)s`` style.

    Names match the parameter map ignoring case; ``@tokens`` with no matching
    parameter are left as they are. Literal ``%`` signs are doubled when
    parameters are bound.

    Returns:
        The rewritten SQL and the bind dict (None when there is nothing to bind).
    """
    if not params:
        return sql_text, None
    bound = {name.lstrip("@"): adapt_value(value) for name, value in params.items()}
    lookup = {name.casefold(): name for name in bound}

    def _replace(match: re.Match) -> str:
        actual = lookup.get(match.group(1).casefold())
        return f"%({actual})s" if actual is not None else match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, sql_text.replace("%", "%%")), bound


def column_names(cursor) -> list[str]:
    return [desc[0] for desc in cursor.description] if cursor.description else []


def fetch_rows(cursor) -> list[dict[str, Any]]:
    """All remaining rows of the cursor as dicts."""
    if cursor.description is None:
        return []
    columns = column_names(cursor)
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def fetch_result_set(cursor, max_rows: Optional[int] = None) -> ResultSet:
    """
    Read the cursor into a ResultSet, honoring an optional row cap.
    One extra row is fetched to tell whether the cap truncated the result.
    """
    if cursor.description is None:
        return ResultSet.empty()
    columns = column_names(cursor)
    if max_rows is None:
        return ResultSet.from_cursor_rows(columns, cursor.fetchall())
    fetched = cursor.fetchmany(max_rows + 1)
    return ResultSet.from_cursor_rows(columns, fetched[:max_rows], truncated=len(fetched) > max_rows)
