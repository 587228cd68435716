"""
repositories/postgres_row_repo.py
---------------------------------
PostgreSQL implementation of RowRepository.
Table, schema and column names are always composed as quoted identifiers;
values are always bound as parameters.
"""

import asyncio
from typing import Any, Callable, Optional

from psycopg2 import sql

import config
from db.connection import connection
from models.records import CreateResult
from repositories.postgres_common import adapt_value, fetch_rows, table_identifier
from security.hashing import hash_listed_fields, parse_field_list
from utils.logger import get_logger

logger = get_logger(__name__)


class PostgresRowRepository:
    """Whole-table CRUD against PostgreSQL via psycopg2."""

    def __init__(
        self,
        dsn: Optional[str] = None,
        connection_factory: Callable = connection,
        default_limit: Optional[int] = None,
    ):
        self.dsn = dsn
        self._connection = connection_factory
        self.default_limit = default_limit or config.DEFAULT_ROW_LIMIT

    # ── READ ──────────────────────────────────────────────

    async def read_rows(self, table: str, schema: Optional[str], limit: Optional[int]) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_rows, table, schema, limit)

    def _read_rows(self, table: str, schema: Optional[str], limit: Optional[int]) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {} LIMIT %s").format(table_identifier(table, schema))
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (limit or self.default_limit,))
                return fetch_rows(cur)

    async def read_rows_by_key(
        self, table: str, schema: Optional[str], key_name: str, key_value: str
    ) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_rows_by_key, table, schema, key_name, key_value)

    def _read_rows_by_key(
        self, table: str, schema: Optional[str], key_name: str, key_value: str
    ) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {} WHERE {}::text = %s").format(
            table_identifier(table, schema), sql.Identifier(key_name)
        )
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (key_value,))
                return fetch_rows(cur)

    async def read_secret_hash(
        self, table: str, schema: Optional[str], user_field: str, secret_field: str, user_value: str
    ) -> Optional[str]:
        return await asyncio.to_thread(
            self._read_secret_hash, table, schema, user_field, secret_field, user_value
        )

    def _read_secret_hash(
        self, table: str, schema: Optional[str], user_field: str, secret_field: str, user_value: str
    ) -> Optional[str]:
        query = sql.SQL("SELECT {} FROM {} WHERE {}::text = %s LIMIT 1").format(
            sql.Identifier(secret_field), table_identifier(table, schema), sql.Identifier(user_field)
        )
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (user_value,))
                row = cur.fetchone()
        if row is None or row[0] is None:
            return None
        return str(row[0])

    # ── CREATE ────────────────────────────────────────────

    async def insert(
        self, table: str, schema: Optional[str], data: dict[str, Any], encrypt_fields: Optional[str]
    ) -> CreateResult:
        return await asyncio.to_thread(self._insert, table, schema, data, encrypt_fields)

    def _insert(
        self, table: str, schema: Optional[str], data: dict[str, Any], encrypt_fields: Optional[str]
    ) -> CreateResult:
        hidden = {name.casefold() for name in parse_field_list(encrypt_fields)}
        values = hash_listed_fields(dict(data), hidden)
        columns = list(values)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            table_identifier(table, schema),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, [adapt_value(values[c]) for c in columns])
                rows = fetch_rows(cur)

        if not rows:
            return CreateResult(success=False)
        returned = rows[0]
        key_field = next(iter(returned), None)
        key_value = returned.get(key_field) if key_field else None
        # hashed secrets never leave the repository
        record = {name: value for name, value in returned.items() if name.casefold() not in hidden}
        logger.info(f"Inserted row into '{table}' ({key_field}={key_value!r})")
        return CreateResult(success=True, key_value=key_value, key_field=key_field, record=record)

    # ── UPDATE ────────────────────────────────────────────

    async def update(
        self,
        table: str,
        schema: Optional[str],
        key_name: str,
        key_value: str,
        data: dict[str, Any],
        encrypt_fields: Optional[str],
    ) -> int:
        return await asyncio.to_thread(self._update, table, schema, key_name, key_value, data, encrypt_fields)

    def _update(
        self,
        table: str,
        schema: Optional[str],
        key_name: str,
        key_value: str,
        data: dict[str, Any],
        encrypt_fields: Optional[str],
    ) -> int:
        values = hash_listed_fields(dict(data), parse_field_list(encrypt_fields))
        columns = list(values)
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in columns
        )
        query = sql.SQL("UPDATE {} SET {} WHERE {}::text = %s").format(
            table_identifier(table, schema), assignments, sql.Identifier(key_name)
        )
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, [adapt_value(values[c]) for c in columns] + [key_value])
                affected = cur.rowcount
        logger.info(f"Updated {affected} row(s) in '{table}' where {key_name}={key_value!r}")
        return affected

    # ── DELETE ────────────────────────────────────────────

    async def delete(self, table: str, schema: Optional[str], key_name: str, key_value: str) -> int:
        return await asyncio.to_thread(self._delete, table, schema, key_name, key_value)

    def _delete(self, table: str, schema: Optional[str], key_name: str, key_value: str) -> int:
        query = sql.SQL("DELETE FROM {} WHERE {}::text = %s").format(
            table_identifier(table, schema), sql.Identifier(key_name)
        )
        with self._connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (key_value,))
                affected = cur.rowcount
        if affected:
            logger.info(f"Deleted {affected} row(s) from '{table}' where {key_name}={key_value!r}")
        return affected
