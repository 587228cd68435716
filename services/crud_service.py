"""
services/crud_service.py
------------------------
Generic table CRUD: validates and normalizes the request, checks the table
policy, then delegates to the row repository.
"""

import asyncio
from typing import Any, Mapping, Optional

from errors import InvalidArgumentError, OperationalError, UnauthorizedError
from models.records import CreateResult, CredentialCheckResult, CredentialOutcome
from repositories.base import RowRepository
from security.hashing import FieldList, parse_field_list, verify_secret
from security.table_policy import TableAccessPolicy
from services.boundary import (
    call_storage,
    normalize_limit,
    normalize_schema,
    require_text,
    returns_result,
)
from utils.logger import get_logger

logger = get_logger(__name__)


class CrudService:
    """
    Stateless pipeline for whole-table operations.

    Workflow (every operation):
        1. Validate required inputs.
        2. Check the table against the access policy.
        3. Normalize schema, limit, keys and encrypt-field list.
        4. Delegate to the repository.
        5. Return the repository's data wrapped in a Result.

    No operation skips step 2.
    """

    def __init__(self, repo: RowRepository, policy: TableAccessPolicy):
        self.repo = repo
        self.policy = policy

    # ── READ ──────────────────────────────────────────────

    @returns_result
    async def list_rows(self, table: str, schema: Optional[str] = None, limit: Optional[int] = None) -> list[dict]:
        """
        List rows of a table.

        Args:
            table: Table name.
            schema: Optional schema; blank means the backend default.
            limit: Optional row limit; None, 0 or negative means the backend default.

        Returns:
            Rows exactly as the repository produced them.
        """
        table = self._authorize(table, modifying=False)
        return await call_storage(
            "list rows", self.repo.read_rows, table, normalize_schema(schema), normalize_limit(limit)
        )

    @returns_result
    async def get_by_key(self, table: str, schema: Optional[str], key_name: str, key_value: str) -> list[dict]:
        """Rows whose ``key_name`` column equals ``key_value``."""
        table = require_text(table, "table")
        key_name = require_text(key_name, "key_name")
        key_value = require_text(key_value, "key_value")
        table = self._authorize(table, modifying=False)
        return await call_storage(
            "read rows by key", self.repo.read_rows_by_key, table, normalize_schema(schema), key_name, key_value
        )

    # ── WRITE ─────────────────────────────────────────────

    @returns_result
    async def create(
        self,
        table: str,
        schema: Optional[str],
        data: Mapping[str, Any],
        encrypt_fields: FieldList = None,
    ) -> CreateResult:
        """
        Insert one row.

        Args:
            data: Column -> value payload; must not be empty.
            encrypt_fields: Columns whose values the repository must hash
                (comma-separated string or list).
        """
        table = require_text(table, "table")
        payload = self._require_data(data)
        table = self._authorize(table, modifying=True)
        return await call_storage(
            "insert row",
            self.repo.insert,
            table,
            normalize_schema(schema),
            payload,
            _normalize_encrypt_fields(encrypt_fields),
        )

    @returns_result
    async def update(
        self,
        table: str,
        schema: Optional[str],
        key_name: str,
        key_value: str,
        data: Mapping[str, Any],
        encrypt_fields: FieldList = None,
    ) -> int:
        """
        Update rows matching the key.

        Returns:
            Number of affected rows; 0 means nothing matched (not an error).
        """
        table = require_text(table, "table")
        key_name = require_text(key_name, "key_name")
        key_value = require_text(key_value, "key_value")
        payload = self._require_data(data)
        table = self._authorize(table, modifying=True)
        return await call_storage(
            "update rows",
            self.repo.update,
            table,
            normalize_schema(schema),
            key_name,
            key_value,
            payload,
            _normalize_encrypt_fields(encrypt_fields),
        )

    @returns_result
    async def delete(self, table: str, schema: Optional[str], key_name: str, key_value: str) -> int:
        """Delete rows matching the key. Returns the affected row count (0 = not found)."""
        table = require_text(table, "table")
        key_name = require_text(key_name, "key_name")
        key_value = require_text(key_value, "key_value")
        table = self._authorize(table, modifying=True)
        return await call_storage(
            "delete rows", self.repo.delete, table, normalize_schema(schema), key_name, key_value
        )

    # ── CREDENTIALS ───────────────────────────────────────

    @returns_result
    async def verify_credential(
        self,
        table: str,
        schema: Optional[str],
        user_field: str,
        secret_field: str,
        user_value: str,
        secret_value: str,
    ) -> CredentialCheckResult:
        """
        Check a user's secret against the BCrypt hash stored in ``table``.

        Returns:
            NOT_FOUND (404) when no user matches, WRONG_SECRET (401) on a
            mismatch, VALID (200) on a match.

        Raises (as Result.failure):
            OperationalError: Lookup or verification blew up.
        """
        table = require_text(table, "table")
        user_field = require_text(user_field, "user_field")
        secret_field = require_text(secret_field, "secret_field")
        user_value = require_text(user_value, "user_value")
        require_text(secret_value, "secret_value")
        table = self._authorize(table, modifying=False)
        schema = normalize_schema(schema)

        try:
            stored_hash = await self.repo.read_secret_hash(table, schema, user_field, secret_field, user_value)
            if stored_hash is None:
                return CredentialCheckResult.of(CredentialOutcome.NOT_FOUND)
            matches = await asyncio.to_thread(verify_secret, secret_value, stored_hash)
        except Exception as e:
            raise OperationalError(
                f"credential verification failed: {e}", operation="verify credential"
            ) from e

        outcome = CredentialOutcome.VALID if matches else CredentialOutcome.WRONG_SECRET
        logger.info(f"Credential check against '{table}': {outcome.name}")
        return CredentialCheckResult.of(outcome)

    # ── HELPERS ───────────────────────────────────────────

    def _authorize(self, table: str, modifying: bool) -> str:
        """Validate the table name and apply the access policy."""
        table = require_text(table, "table")
        if not self.policy.is_allowed(table):
            verb = "modified" if modifying else "queried"
            raise UnauthorizedError(f"table '{table}' is restricted and cannot be {verb}", table=table)
        return table

    @staticmethod
    def _require_data(data: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        if data is None or not isinstance(data, Mapping) or len(data) == 0:
            raise InvalidArgumentError("data must not be empty", field="data")
        return dict(data)


def _normalize_encrypt_fields(fields: FieldList) -> Optional[str]:
    """Blank list -> None; otherwise a trimmed comma-separated string."""
    names = parse_field_list(fields)
    return ",".join(names) if names else None
