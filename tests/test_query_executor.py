"""Tests for sqldiag.db.query_executor — pyodbc execution and error mapping."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from sqldiag.config import Settings
from sqldiag.db.query_executor import OdbcQueryExecutor
from sqldiag.exceptions import AuthError, QueryError, QueryTimeout
from sqldiag.models import Credential

pyodbc = pytest.importorskip("pyodbc")

_CRED = Credential(username="diag", password="p}ss;word")


def _execute(executor: OdbcQueryExecutor, sql: str = "SELECT 1", params=()):
    return executor.execute("DBHOST01\\PROD", "master", sql, 30, _CRED, params=params)


@pytest.fixture
def connection():
    with patch("pyodbc.connect") as connect:
        conn = MagicMock()
        connect.return_value = conn
        yield connect, conn


class TestOdbcQueryExecutor:
    def test_returns_first_column_of_first_row(self, connection):
        connect, conn = connection
        conn.cursor.return_value.fetchone.return_value = ("Developer Edition", "ignored")

        assert _execute(OdbcQueryExecutor()) == "Developer Edition"
        conn.close.assert_called_once()

    def test_no_rows_returns_none(self, connection):
        _, conn = connection
        conn.cursor.return_value.fetchone.return_value = None
        assert _execute(OdbcQueryExecutor()) is None

    def test_applies_query_timeout_and_params(self, connection):
        connect, conn = connection
        conn.cursor.return_value.fetchone.return_value = (1,)
        _execute(OdbcQueryExecutor(Settings(login_timeout=7)), "SELECT ?", params=("a", "b"))

        assert conn.timeout == 30
        assert connect.call_args.kwargs["timeout"] == 7
        conn.cursor.return_value.execute.assert_called_once_with("SELECT ?", "a", "b")

    def test_connection_string(self):
        executor = OdbcQueryExecutor(Settings(odbc_driver="ODBC Driver 18 for SQL Server"))
        conn_str = executor.connection_string("DBHOST01\\PROD", "master", _CRED)
        assert conn_str.startswith("DRIVER={ODBC Driver 18 for SQL Server};")
        assert "SERVER=DBHOST01\\PROD;" in conn_str
        assert "UID=diag;" in conn_str
        assert "PWD={p}}ss;word};" in conn_str
        assert "TrustServerCertificate=yes" in conn_str

    @pytest.mark.parametrize(
        "state,expected",
        [("HYT00", QueryTimeout), ("HYT01", QueryTimeout), ("28000", AuthError), ("42S02", QueryError)],
    )
    def test_execute_errors_translated(self, connection, state, expected):
        _, conn = connection
        conn.cursor.return_value.execute.side_effect = pyodbc.Error(state, "driver message")
        with pytest.raises(expected) as exc_info:
            _execute(OdbcQueryExecutor())
        assert type(exc_info.value) is expected
        assert state in str(exc_info.value)
        conn.close.assert_called_once()

    def test_login_failure_is_auth_error(self, connection):
        connect, _ = connection
        connect.side_effect = pyodbc.InterfaceError("28000", "Login failed for user 'diag'")
        with pytest.raises(AuthError, match="Login failed"):
            _execute(OdbcQueryExecutor())
