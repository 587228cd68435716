from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import psycopg2
import pytest
from psycopg2 import extras, sql

from db import connection as db_connection
from errors import InvalidArgumentError
from repositories.postgres_common import adapt_value, fetch_result_set, to_pyformat
from repositories.postgres_query_repo import PostgresQueryRepository
from repositories.postgres_row_repo import PostgresRowRepository
from security.hashing import verify_secret
from tests.conftest import FakeCursor


class TestToPyformat:
    def test_rewrites_placeholders_ignoring_case(self):
        statement, bound = to_pyformat("SELECT * FROM t WHERE a = @A AND b = @b", {"@a": 1, "@b": "x"})
        assert statement == "SELECT * FROM t WHERE a = %(a)s AND b = %(b)s"
        assert bound == {"a": 1, "b": "x"}

    def test_escapes_percent_when_binding(self):
        statement, _ = to_pyformat("SELECT * FROM t WHERE n LIKE 'x%' AND id = @id", {"@id": 1})
        assert statement == "SELECT * FROM t WHERE n LIKE 'x%%' AND id = %(id)s"

    def test_leaves_unknown_and_embedded_at_signs(self):
        statement, _ = to_pyformat("SELECT @@version, 'ana@x.com', @other, @x", {"@x": 1})
        assert statement == "SELECT @@version, 'ana@x.com', @other, %(x)s"

    def test_no_params_is_untouched(self):
        assert to_pyformat("SELECT 'x%'", {}) == ("SELECT 'x%'", None)


class TestAdaptValue:
    def test_containers_become_json(self):
        assert isinstance(adapt_value({"a": 1}), extras.Json)
        assert isinstance(adapt_value([1, 2]), extras.Json)

    def test_midnight_datetime_becomes_date(self):
        assert adapt_value(datetime(2024, 5, 1)) == date(2024, 5, 1)

    def test_other_values_unchanged(self):
        moment = datetime(2024, 5, 1, 8, 30)
        assert adapt_value(moment) is moment
        assert adapt_value("text") == "text"


class TestFetchResultSet:
    def test_truncates_at_cap(self):
        cursor = FakeCursor(description=[("id",)], rows=[(1,), (2,), (3,)])
        result = fetch_result_set(cursor, 2)
        assert result.rows == [{"id": 1}, {"id": 2}]
        assert result.truncated

    def test_exact_cap_not_truncated(self):
        cursor = FakeCursor(description=[("id",)], rows=[(1,), (2,)])
        assert not fetch_result_set(cursor, 2).truncated

    def test_statement_without_rows(self):
        assert fetch_result_set(FakeCursor(description=None)).is_empty


class TestPostgresRowRepository:
    async def test_read_rows_uses_default_limit(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",), ("nombre",)]
        fake_cursor.rows = [(1, "X")]
        repo = PostgresRowRepository("postgresql://test", connection_factory, default_limit=1000)
        rows = await repo.read_rows("productos", None, None)
        assert rows == [{"id": 1, "nombre": "X"}]
        query, args = fake_cursor.executed[0]
        assert isinstance(query, sql.Composed)
        assert args == (1000,)
        assert connection_factory.calls == ["postgresql://test"]

    async def test_read_rows_explicit_limit(self, connection_factory, fake_cursor):
        repo = PostgresRowRepository(connection_factory=connection_factory)
        await repo.read_rows("productos", "ventas", 5)
        assert fake_cursor.executed[0][1] == (5,)

    async def test_read_rows_by_key(self, connection_factory, fake_cursor):
        repo = PostgresRowRepository(connection_factory=connection_factory)
        await repo.read_rows_by_key("productos", None, "codigo", "7")
        assert fake_cursor.executed[0][1] == ("7",)

    async def test_insert_returns_first_column_as_key(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",), ("nombre",)]
        fake_cursor.rows = [(7, "X")]
        repo = PostgresRowRepository(connection_factory=connection_factory)
        created = await repo.insert("productos", None, {"nombre": "X"}, None)
        assert created.success
        assert created.key_field == "id"
        assert created.key_value == 7
        assert created.record == {"id": 7, "nombre": "X"}
        assert fake_cursor.executed[0][1] == ["X"]

    async def test_insert_hashes_encrypt_fields(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",)]
        fake_cursor.rows = [(1,)]
        repo = PostgresRowRepository(connection_factory=connection_factory)
        await repo.insert("cuentas", None, {"email": "ana@x.com", "Clave": "pw"}, "clave")
        email, hashed = fake_cursor.executed[0][1]
        assert email == "ana@x.com"
        assert verify_secret("pw", hashed)

    async def test_insert_does_not_echo_hashed_columns(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",), ("email",), ("clave",)]
        fake_cursor.rows = [(9, "ana@x.com", "$2b$04$" + "a" * 53)]
        repo = PostgresRowRepository(connection_factory=connection_factory)
        created = await repo.insert("cuentas", None, {"email": "ana@x.com", "clave": "pw"}, "CLAVE")
        assert created.record == {"id": 9, "email": "ana@x.com"}
        assert created.key_field == "id"
        assert created.key_value == 9

    async def test_insert_without_returned_row(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",)]
        repo = PostgresRowRepository(connection_factory=connection_factory)
        created = await repo.insert("productos", None, {"nombre": "X"}, None)
        assert not created.success

    async def test_update_returns_rowcount(self, connection_factory, fake_cursor):
        fake_cursor.rowcount = 2
        repo = PostgresRowRepository(connection_factory=connection_factory)
        affected = await repo.update("productos", None, "id", "5", {"nombre": "Y", "tags": ["a"]}, None)
        assert affected == 2
        values = fake_cursor.executed[0][1]
        assert values[0] == "Y"
        assert isinstance(values[1], extras.Json)
        assert values[2] == "5"

    async def test_delete_returns_rowcount(self, connection_factory, fake_cursor):
        repo = PostgresRowRepository(connection_factory=connection_factory)
        assert await repo.delete("productos", None, "id", "404") == 0
        assert fake_cursor.executed[0][1] == ("404",)

    async def test_read_secret_hash(self, connection_factory, fake_cursor):
        fake_cursor.fetchone_results = [("$2b$04$stored",)]
        repo = PostgresRowRepository(connection_factory=connection_factory)
        assert await repo.read_secret_hash("cuentas", None, "email", "clave", "ana@x.com") == "$2b$04$stored"
        assert fake_cursor.executed[0][1] == ("ana@x.com",)

    async def test_read_secret_hash_unknown_user(self, connection_factory):
        repo = PostgresRowRepository(connection_factory=connection_factory)
        assert await repo.read_secret_hash("cuentas", None, "email", "clave", "nadie") is None


class TestPostgresQueryRepository:
    async def test_schema_qualified_routine_is_looked_up_in_its_schema(self, connection_factory, fake_cursor):
        fake_cursor.fetchone_results = [("PROCEDURE",)]
        fake_cursor.fetchall_results = [[("p_caja", "IN", "integer")]]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        await repo.execute_stored_procedure("ventas.sp_cerrar_caja", {"@p_caja": 4})
        assert fake_cursor.executed[0][1] == ("ventas", "sp_cerrar_caja")
        assert fake_cursor.executed[1][1] == ("ventas", "sp_cerrar_caja")
        assert fake_cursor.executed[2][1] == [4]

    @pytest.mark.parametrize("value", [3.7, "2.5", "abc", float("nan")])
    async def test_integer_parameter_rejects_lossy_values(self, connection_factory, fake_cursor, value):
        fake_cursor.fetchone_results = [("PROCEDURE",)]
        fake_cursor.fetchall_results = [[("p_caja", "IN", "integer")]]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        with pytest.raises(InvalidArgumentError) as exc:
            await repo.execute_stored_procedure("sp_cerrar_caja", {"@p_caja": value})
        assert exc.value.field == "p_caja"
        assert len(fake_cursor.executed) == 2

    @pytest.mark.parametrize("value", [3.0, "3", " 3 "])
    async def test_integer_parameter_accepts_integral_values(self, connection_factory, fake_cursor, value):
        fake_cursor.fetchone_results = [("PROCEDURE",)]
        fake_cursor.fetchall_results = [[("p_caja", "IN", "integer")]]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        await repo.execute_stored_procedure("sp_cerrar_caja", {"@p_caja": value})
        assert fake_cursor.executed[2][1] == [3]

    async def test_parametrized_query_with_schema(self, connection_factory, fake_cursor):
        fake_cursor.description = [("id",)]
        fake_cursor.rows = [(1,), (2,), (3,)]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        result = await repo.execute_parametrized_query(
            "SELECT id FROM productos WHERE precio > @precio", {"@precio": 100}, 2, "ventas"
        )
        assert isinstance(fake_cursor.executed[0][0], sql.Composed)
        assert fake_cursor.executed[1] == ("SELECT id FROM productos WHERE precio > %(precio)s", {"precio": 100})
        assert len(result) == 2
        assert result.truncated

    async def test_parametrized_query_without_schema(self, connection_factory, fake_cursor):
        fake_cursor.description = [("alive",)]
        fake_cursor.rows = [(1,)]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        result = await repo.execute_parametrized_query("SELECT 1 AS alive", {}, 1, None)
        assert fake_cursor.executed == [("SELECT 1 AS alive", None)]
        assert result.rows == [{"alive": 1}]

    async def test_explain_accepts(self, connection_factory, fake_cursor):
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        assert await repo.explain_query("SELECT * FROM t WHERE id = @id", {"@id": 1}) == (True, None)
        assert fake_cursor.executed[0] == ("EXPLAIN SELECT * FROM t WHERE id = %(id)s", {"id": 1})

    async def test_explain_reports_backend_rejection(self, connection_factory, fake_cursor):
        fake_cursor.error = psycopg2.ProgrammingError('relation "nope" does not exist')
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        ok, reason = await repo.explain_query("SELECT * FROM nope", {})
        assert not ok
        assert reason == 'relation "nope" does not exist'

    async def test_function_is_selected_with_coerced_inputs(self, connection_factory, fake_cursor):
        fake_cursor.description = [("total",)]
        fake_cursor.fetchone_results = [("FUNCTION",)]
        fake_cursor.fetchall_results = [
            [("p_caja", "IN", "integer"), ("p_monto", "IN", "numeric"), ("p_total", "OUT", "numeric")],
            [(Decimal("10.50"),)],
        ]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        result = await repo.execute_stored_procedure("fn_total", {"@P_CAJA": "3", "@p_monto": 10.5})
        call, args = fake_cursor.executed[2]
        assert isinstance(call, sql.Composed)
        assert fake_cursor.executed[0][1] == ("public", "fn_total")
        assert args == [3, Decimal("10.5")]
        assert result.rows == [{"total": Decimal("10.50")}]

    async def test_procedure_without_result(self, connection_factory, fake_cursor):
        fake_cursor.fetchone_results = [("PROCEDURE",)]
        fake_cursor.fetchall_results = [[("p_id", "IN", "text")]]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        result = await repo.execute_stored_procedure("sp_cerrar", {})
        assert fake_cursor.executed[2][1] == [None]
        assert result.is_empty

    async def test_find_table_schema(self, connection_factory, fake_cursor):
        fake_cursor.fetchone_results = [("ventas",)]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        assert await repo.find_table_schema("productos", None) == "ventas"
        assert fake_cursor.executed[0][1] == ("productos", "public")

    async def test_describe_table(self, connection_factory, fake_cursor):
        fake_cursor.description = [("column_name",), ("data_type",)]
        fake_cursor.rows = [("id", "integer")]
        repo = PostgresQueryRepository(connection_factory=connection_factory)
        result = await repo.describe_table("productos", "public")
        assert result.rows == [{"column_name": "id", "data_type": "integer"}]
        assert fake_cursor.executed[0][1] == ("productos", "public")


class TestConnection:
    def test_commits_and_closes(self, monkeypatch):
        conn = MagicMock()
        monkeypatch.setattr(db_connection.psycopg2, "connect", MagicMock(return_value=conn))
        with db_connection.connection("postgresql://test") as opened:
            assert opened is conn
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_rolls_back_on_error(self, monkeypatch):
        conn = MagicMock()
        monkeypatch.setattr(db_connection.psycopg2, "connect", MagicMock(return_value=conn))
        with pytest.raises(RuntimeError):
            with db_connection.connection():
                raise RuntimeError("boom")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()
