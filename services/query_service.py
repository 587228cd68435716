"""
services/query_service.py
-------------------------
Parametrized SELECT execution and stored-procedure calls.

Every SQL text passes the safety validator before it reaches storage;
every parameter bag passes through the normalizer.
"""

import asyncio
from typing import Any, Iterable, Mapping, Optional

import config
from errors import InvalidArgumentError, UnauthorizedError
from models.records import ResultSet
from repositories.base import QueryRepository
from security.hashing import FieldList, parse_field_list
from security.query_validator import validate_query
from security.table_policy import ForbiddenTableSet
from services.boundary import call_storage, normalize_schema, require_text, returns_result
from services.parameter_normalizer import normalize_parameters, parameter_kinds, wrap_untyped
from utils.logger import get_logger, shorten_sql

logger = get_logger(__name__)


class QueryService:
    """
    Validates and dispatches free-form queries.

    Args:
        repo: Query repository doing the actual execution.
        forbidden_tables: The process-wide forbidden-table set.
        max_rows: Default row cap for untyped queries.
    """

    def __init__(
        self,
        repo: QueryRepository,
        forbidden_tables: Optional[Iterable[str]] = None,
        max_rows: Optional[int] = None,
    ):
        self.repo = repo
        self.forbidden_tables = (
            forbidden_tables if isinstance(forbidden_tables, ForbiddenTableSet) else ForbiddenTableSet(forbidden_tables)
        )
        self.max_rows = config.QUERY_MAX_ROWS if max_rows is None else max_rows

    # ── VALIDATION ────────────────────────────────────────

    def validate_query(
        self, sql: str, forbidden_tables: Optional[Iterable[str]] = None
    ) -> tuple[bool, Optional[str]]:
        """Pre-check a query without executing it. Defaults to the configured forbidden set."""
        tables = self.forbidden_tables if forbidden_tables is None else forbidden_tables
        return validate_query(sql, tables)

    def _require_safe(self, sql: str) -> None:
        ok, reason = self.validate_query(sql)
        if not ok:
            raise UnauthorizedError(reason or "query not authorized")

    # ── EXECUTION ─────────────────────────────────────────

    @returns_result
    async def execute_parametrized(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        max_rows: int,
        schema: Optional[str] = None,
    ) -> ResultSet:
        """
        Run a validated SELECT/WITH statement with already-typed parameters.

        Args:
            sql: The statement, using ``@name`` placeholders.
            params: Typed parameter map.
            max_rows: Row cap the repository must honor.
            schema: Optional schema to resolve unqualified names against.
        """
        return await self._run_parametrized(sql, params, max_rows, schema)

    @returns_result
    async def execute_parametrized_from_untyped(
        self, sql: str, raw_params: Optional[Mapping[str, Any]] = None
    ) -> ResultSet:
        """
        Normalize a JSON-origin parameter bag (JSON object text or a decoded
        mapping), then run the query with the default row cap and the
        backend's default schema.
        """
        params = normalize_parameters(wrap_untyped(raw_params))
        return await self._run_parametrized(sql, params, self.max_rows, None)

    async def _run_parametrized(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        max_rows: int,
        schema: Optional[str],
    ) -> ResultSet:
        self._require_safe(sql)
        if isinstance(max_rows, bool) or not isinstance(max_rows, int) or max_rows <= 0:
            raise InvalidArgumentError(f"max_rows must be a positive integer, got {max_rows!r}", field="max_rows")

        logger.info(f"Executing query (params [{_describe(params)}], cap {max_rows}): {shorten_sql(sql)}")
        result = await call_storage(
            "execute parametrized query",
            self.repo.execute_parametrized_query,
            sql,
            dict(params or {}),
            max_rows,
            normalize_schema(schema),
        )
        if result.truncated:
            logger.warning(f"Query result reached the {max_rows}-row cap: {shorten_sql(sql)}")
        return result

    @returns_result
    async def execute_stored_procedure(
        self,
        proc_name: str,
        raw_params: Optional[Mapping[str, Any]] = None,
        encrypt_fields: FieldList = None,
    ) -> ResultSet:
        """
        Call a stored procedure or function.

        Returns:
            The produced rows; an empty ResultSet when it returns nothing.
        """
        proc_name = require_text(proc_name, "procedure name")
        fields = parse_field_list(encrypt_fields)
        if fields:
            # BCrypt is slow; keep it off the event loop
            params = await asyncio.to_thread(normalize_parameters, wrap_untyped(raw_params), fields)
        else:
            params = normalize_parameters(wrap_untyped(raw_params))

        logger.info(f"Calling stored procedure '{proc_name}' with params [{_describe(params)}]")
        result = await call_storage("execute stored procedure", self.repo.execute_stored_procedure, proc_name, params)
        return result if result is not None else ResultSet.empty()

    # ── DRY RUN / CATALOG ─────────────────────────────────

    @returns_result
    async def explain_query(
        self, sql: str, raw_params: Optional[Mapping[str, Any]] = None
    ) -> tuple[bool, Optional[str]]:
        """
        Ask the backend to plan the query without running it.

        Returns:
            ``(True, None)`` if the backend accepts it, ``(False, reason)``
            if it does not. Policy violations are failures, not data.
        """
        self._require_safe(sql)
        params = normalize_parameters(wrap_untyped(raw_params))
        return await call_storage("explain query", self.repo.explain_query, sql, params)

    @returns_result
    async def describe_table(self, table: str, schema: Optional[str] = None) -> ResultSet:
        """
        Column metadata for a table. An unknown table gives an empty ResultSet.
        """
        table = require_text(table, "table")
        if table in self.forbidden_tables:
            raise UnauthorizedError(f"table '{table}' is restricted and cannot be queried", table=table)
        actual_schema = await call_storage(
            "find table schema", self.repo.find_table_schema, table, normalize_schema(schema)
        )
        if actual_schema is None:
            logger.info(f"Table '{table}' not found in any schema")
            return ResultSet.empty()
        return await call_storage("describe table", self.repo.describe_table, table, actual_schema)

    @returns_result
    async def describe_database(self) -> ResultSet:
        """Tables and columns of the database, forbidden tables left out."""
        structure = await call_storage("describe database", self.repo.describe_database)
        rows = [
            row for row in structure.rows
            if str(row.get("table_name", "")) not in self.forbidden_tables
        ]
        return ResultSet(columns=list(structure.columns), rows=rows, truncated=structure.truncated)


def _describe(params: Optional[Mapping[str, Any]]) -> str:
    """``@name:kind`` pairs for log lines; values are left out."""
    return ", ".join(f"{name}:{kind.value}" for name, kind in parameter_kinds(params or {}).items())
