"""
repositories/postgres_query_repo.py
-----------------------------------
PostgreSQL implementation of QueryRepository: free-form SELECTs with
``@name`` parameters, stored procedures/functions and catalog lookups.
"""

import asyncio
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import psycopg2
from psycopg2 import extras, sql

from db.connection import connection
from errors import InvalidArgumentError
from models.records import ResultSet
from repositories.postgres_common import (
    adapt_value,
    fetch_result_set,
    split_routine_name,
    to_pyformat,
)
from utils.logger import get_logger, shorten_sql

logger = get_logger(__name__)

ROUTINE_TYPE_SQL = """
    SELECT routine_type
    FROM information_schema.routines
    WHERE routine_schema = %s AND routine_name = %s
    LIMIT 1;
"""

ROUTINE_PARAMETERS_SQL = """
    SELECT parameter_name, parameter_mode, data_type
    FROM information_schema.parameters
    WHERE specific_name = (
        SELECT specific_name
        FROM information_schema.routines
        WHERE routine_schema = %s AND routine_name = %s
        LIMIT 1
    )
    ORDER BY ordinal_position;
"""

TABLE_SCHEMA_SQL = """
    SELECT table_schema
    FROM information_schema.tables
    WHERE table_name = %s
    ORDER BY (table_schema = %s) DESC, (table_schema = 'public') DESC, table_schema
    LIMIT 1;
"""

TABLE_STRUCTURE_SQL = """
    SELECT column_name, data_type, is_nullable, column_default, character_maximum_length
    FROM information_schema.columns
    WHERE table_name = %s AND table_schema = %s
    ORDER BY ordinal_position;
"""

DATABASE_STRUCTURE_SQL = """
    SELECT table_schema, table_name, column_name, data_type
    FROM information_schema.columns
    WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
    ORDER BY table_schema, table_name, ordinal_position;
"""

_INTEGER_TYPES = {"integer", "int", "int4", "smallint", "int2", "bigint", "int8"}
_NUMERIC_TYPES = {"numeric", "decimal"}
_JSON_TYPES = {"json", "jsonb"}


class PostgresQueryRepository:
    """Parametrized query and routine execution against PostgreSQL."""

    def __init__(self, dsn: Optional[str] = None, connection_factory: Callable = connection):
        self.dsn = dsn
        self._connection = connection_factory

    # ── PARAMETRIZED QUERIES ──────────────────────────────

    async def execute_parametrized_query(
        self, sql_text: str, params: dict[str, Any], max_rows: int, schema: Optional[str]
    ) -> ResultSet:
        return await asyncio.to_thread(self._execute_parametrized_query, sql_text, params, max_rows, schema)

    def _execute_parametrized_query(
        self, sql_text: str, params: dict[str, Any], max_rows: int, schema: Optional[str]
    ) -> ResultSet:
        statement, bound = to_pyformat(sql_text, params)
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                if schema:
                    cur.execute(sql.SQL("SET LOCAL search_path TO {}").format(sql.Identifier(schema)))
                cur.execute(statement, bound)
                return fetch_result_set(cur, max_rows)

    async def explain_query(self, sql_text: str, params: dict[str, Any]) -> tuple[bool, Optional[str]]:
        return await asyncio.to_thread(self._explain_query, sql_text, params)

    def _explain_query(self, sql_text: str, params: dict[str, Any]) -> tuple[bool, Optional[str]]:
        statement, bound = to_pyformat(sql_text, params)
        try:
            with self._connection(self.dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute("EXPLAIN " + statement, bound)
        except (psycopg2.ProgrammingError, psycopg2.DataError) as e:
            logger.info(f"Backend rejected query on EXPLAIN: {shorten_sql(sql_text)}")
            return False, str(e).strip()
        return True, None

    # ── STORED PROCEDURES ─────────────────────────────────

    async def execute_stored_procedure(self, name: str, params: dict[str, Any]) -> ResultSet:
        return await asyncio.to_thread(self._execute_stored_procedure, name, params)

    def _execute_stored_procedure(self, name: str, params: dict[str, Any]) -> ResultSet:
        by_name = {key.lstrip("@").casefold(): value for key, value in (params or {}).items()}
        schema, routine_name = split_routine_name(name)
        if not routine_name:
            raise InvalidArgumentError(f"invalid procedure name: {name!r}", field="procedure name")

        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(ROUTINE_TYPE_SQL, (schema, routine_name))
                row = cur.fetchone()
                routine_type = (row[0] if row and row[0] else "PROCEDURE").upper()

                cur.execute(ROUTINE_PARAMETERS_SQL, (schema, routine_name))
                inputs = [
                    (p_name or "", (p_type or "text").lower())
                    for p_name, p_mode, p_type in cur.fetchall()
                    if (p_mode or "IN").upper() == "IN"
                ]

                args = [
                    _coerce(p_name, by_name.get(p_name.casefold()), p_type) for p_name, p_type in inputs
                ]
                placeholders = sql.SQL(", ").join(sql.Placeholder() for _ in args)
                template = "SELECT * FROM {}({})" if routine_type == "FUNCTION" else "CALL {}({})"
                call = sql.SQL(template).format(sql.Identifier(schema, routine_name), placeholders)

                logger.info(f"Executing {routine_type.lower()} '{name}' with {len(args)} input(s)")
                cur.execute(call, args)
                return fetch_result_set(cur)

    # ── CATALOG ───────────────────────────────────────────

    async def find_table_schema(self, table: str, preferred_schema: Optional[str]) -> Optional[str]:
        return await asyncio.to_thread(self._find_table_schema, table, preferred_schema)

    def _find_table_schema(self, table: str, preferred_schema: Optional[str]) -> Optional[str]:
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(TABLE_SCHEMA_SQL, (table, preferred_schema or "public"))
                row = cur.fetchone()
        return str(row[0]) if row else None

    async def describe_table(self, table: str, schema: str) -> ResultSet:
        return await asyncio.to_thread(self._fetch_catalog, TABLE_STRUCTURE_SQL, (table, schema))

    async def describe_database(self) -> ResultSet:
        return await asyncio.to_thread(self._fetch_catalog, DATABASE_STRUCTURE_SQL, None)

    def _fetch_catalog(self, query: str, args: Optional[tuple]) -> ResultSet:
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, args)
                return fetch_result_set(cur)


def _coerce(name: str, value: Any, data_type: str) -> Any:
    """
    Bind a routine argument according to the declared parameter type.

    Raises:
        InvalidArgumentError: The value cannot represent the declared
            integer or numeric type without losing information.
    """
    if value is None:
        return None
    if isinstance(value, str) and value.lstrip().startswith(("{", "[")):
        try:
            return extras.Json(json.loads(value))
        except ValueError:
            return value
    if data_type in _JSON_TYPES:
        return extras.Json(value)
    if data_type in _INTEGER_TYPES and not isinstance(value, bool):
        return _to_integer(name, value, data_type)
    if data_type in _NUMERIC_TYPES and not isinstance(value, bool):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidArgumentError(
                f"parameter '{name}' expects {data_type}, got {value!r}", field=name
            ) from None
    return adapt_value(value)


def _to_integer(name: str, value: Any, data_type: str) -> int:
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        number = None
    if number is None or not number.is_finite() or number != number.to_integral_value():
        raise InvalidArgumentError(f"parameter '{name}' expects {data_type}, got {value!r}", field=name)
    return int(number)
