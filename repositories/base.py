"""
repositories/base.py
--------------------
Storage contracts the services depend on. Concrete drivers live next to
this module; the services only ever see these protocols.

All methods are coroutines. Drivers own retries, timeouts and the row cap.
"""

from typing import Any, Optional, Protocol

from models.records import CreateResult, ResultSet


class RowRepository(Protocol):
    """Whole-table reads and writes addressed by table name."""

    async def read_rows(self, table: str, schema: Optional[str], limit: Optional[int]) -> list[dict[str, Any]]:
        ...

    async def read_rows_by_key(
        self, table: str, schema: Optional[str], key_name: str, key_value: str
    ) -> list[dict[str, Any]]:
        ...

    async def insert(
        self, table: str, schema: Optional[str], data: dict[str, Any], encrypt_fields: Optional[str]
    ) -> CreateResult:
        ...

    async def update(
        self,
        table: str,
        schema: Optional[str],
        key_name: str,
        key_value: str,
        data: dict[str, Any],
        encrypt_fields: Optional[str],
    ) -> int:
        ...

    async def delete(self, table: str, schema: Optional[str], key_name: str, key_value: str) -> int:
        ...

    async def read_secret_hash(
        self, table: str, schema: Optional[str], user_field: str, secret_field: str, user_value: str
    ) -> Optional[str]:
        ...


class QueryRepository(Protocol):
    """Arbitrary parametrized SELECTs, stored procedures and catalog lookups."""

    async def execute_parametrized_query(
        self, sql: str, params: dict[str, Any], max_rows: int, schema: Optional[str]
    ) -> ResultSet:
        ...

    async def execute_stored_procedure(self, name: str, params: dict[str, Any]) -> ResultSet:
        ...

    async def explain_query(self, sql: str, params: dict[str, Any]) -> tuple[bool, Optional[str]]:
        ...

    async def find_table_schema(self, table: str, preferred_schema: Optional[str]) -> Optional[str]:
        ...

    async def describe_table(self, table: str, schema: str) -> ResultSet:
        ...

    async def describe_database(self) -> ResultSet:
        ...
