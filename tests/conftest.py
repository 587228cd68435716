"""Shared fixtures: cheap BCrypt, storage fakes and a fake psycopg2 connection."""

from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

import config
from security.table_policy import ConfiguredTableAccessPolicy
from services.crud_service import CrudService
from services.query_service import QueryService


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Keep hashing fast; cost 4 is the lowest BCrypt accepts."""
    monkeypatch.setattr(config, "BCRYPT_COST", 4)


@pytest.fixture
def row_repo():
    repo = MagicMock()
    repo.read_rows = AsyncMock(return_value=[])
    repo.read_rows_by_key = AsyncMock(return_value=[])
    repo.insert = AsyncMock()
    repo.update = AsyncMock(return_value=0)
    repo.delete = AsyncMock(return_value=0)
    repo.read_secret_hash = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def query_repo():
    repo = MagicMock()
    repo.execute_parametrized_query = AsyncMock()
    repo.execute_stored_procedure = AsyncMock()
    repo.explain_query = AsyncMock(return_value=(True, None))
    repo.find_table_schema = AsyncMock(return_value=None)
    repo.describe_table = AsyncMock()
    repo.describe_database = AsyncMock()
    return repo


@pytest.fixture
def policy():
    return ConfiguredTableAccessPolicy(["usuarios", "secrets"])


@pytest.fixture
def crud(row_repo, policy):
    return CrudService(row_repo, policy)


@pytest.fixture
def queries(query_repo, policy):
    return QueryService(query_repo, policy.forbidden_tables)


class FakeCursor:
    """Minimal DB-API cursor recording executed statements."""

    def __init__(self, description=None, rows=None, rowcount=0, fetchone_results=None):
        self.description = description
        self.rows = list(rows or [])
        self.rowcount = rowcount
        self.fetchone_results = list(fetchone_results or [])
        self.fetchall_results = []
        self.error = None
        self.executed = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, args=None):
        self.executed.append((query, args))
        if self.error is not None:
            raise self.error

    def fetchall(self):
        if self.fetchall_results:
            return self.fetchall_results.pop(0)
        return list(self.rows)

    def fetchmany(self, size):
        return list(self.rows[:size])

    def fetchone(self):
        if self.fetchone_results:
            return self.fetchone_results.pop(0)
        return self.rows[0] if self.rows else None


@pytest.fixture
def fake_cursor():
    return FakeCursor()


@pytest.fixture
def connection_factory(fake_cursor):
    """Stand-in for ``db.connection.connection`` yielding a mocked connection."""
    conn = MagicMock()
    conn.cursor.return_value = fake_cursor
    calls = []

    @contextmanager
    def factory(dsn=None):
        calls.append(dsn)
        yield conn

    factory.conn = conn
    factory.calls = calls
    return factory
