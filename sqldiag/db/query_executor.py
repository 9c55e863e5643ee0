from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from sqldiag.config import Settings, settings
from sqldiag.exceptions import AuthError, QueryError, QueryTimeout
from sqldiag.models.run import Credential

logger = logging.getLogger(__name__)

_TIMEOUT_STATES = {"HYT00", "HYT01"}
_AUTH_STATES = {"28000"}


class QueryExecutor(ABC):
    """Runs a single scalar query against a database engine."""

    @abstractmethod
    def execute(
        self,
        server: str,
        database: str,
        sql: str,
        timeout: int,
        credential: Credential,
        params: Sequence[Any] = (),
    ) -> Any:
        """Return the first column of the first row, or ``None`` for no rows."""
        ...


class OdbcQueryExecutor(QueryExecutor):
    """QueryExecutor backed by pyodbc and the Microsoft ODBC driver.

    A connection is opened per query; the sampler issues a handful of queries
    per interval so pooling is left to the driver manager.
    """

    def __init__(self, cfg: Settings | None = None) -> None:
        self._settings = cfg or settings

    def connection_string(self, server: str, database: str, credential: Credential) -> str:
        parts = [
            f"DRIVER={{{self._settings.odbc_driver}}}",
            f"SERVER={server}",
            f"DATABASE={database}",
            f"UID={credential.username}",
            f"PWD={{{_escape(credential.password.get_secret_value())}}}",
        ]
        if self._settings.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        return ";".join(parts) + ";"

    def execute(
        self,
        server: str,
        database: str,
        sql: str,
        timeout: int,
        credential: Credential,
        params: Sequence[Any] = (),
    ) -> Any:
        try:
            import pyodbc  # loads the system ODBC driver manager
        except ImportError as exc:
            raise QueryError(f"ODBC driver manager unavailable: {exc}") from exc

        conn_str = self.connection_string(server, database, credential)
        try:
            conn = pyodbc.connect(conn_str, timeout=self._settings.login_timeout)
        except pyodbc.Error as exc:
            raise self._translate(exc) from exc
        try:
            conn.timeout = timeout
            cursor = conn.cursor()
            cursor.execute(sql, *params)
            row = cursor.fetchone()
            return row[0] if row is not None else None
        except pyodbc.Error as exc:
            raise self._translate(exc) from exc
        finally:
            conn.close()

    @staticmethod
    def _translate(exc: Exception) -> QueryError:
        state = exc.args[0] if exc.args else ""
        message = exc.args[1] if len(exc.args) > 1 else str(exc)
        if state in _TIMEOUT_STATES:
            return QueryTimeout(f"query timed out ({state}): {message}")
        if state in _AUTH_STATES:
            return AuthError(f"login failed ({state}): {message}")
        return QueryError(f"query failed ({state}): {message}")


def _escape(value: str) -> str:
    # ODBC braced values escape a closing brace by doubling it
    return value.replace("}", "}}")
