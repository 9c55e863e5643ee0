from __future__ import annotations


class SqlDiagError(Exception):
    """Base class for all collector errors."""


class ConfigurationError(SqlDiagError):
    """One or more required run parameters are missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing: list[str] = missing or []


class CounterUnavailable(SqlDiagError):
    """A named performance counter could not be read."""

    def __init__(self, counter: str, reason: str = "") -> None:
        super().__init__(f"counter {counter!r} unavailable" + (f": {reason}" if reason else ""))
        self.counter = counter
        self.reason = reason


class QueryError(SqlDiagError):
    """A database-engine query failed."""


class QueryTimeout(QueryError):
    """A database-engine query exceeded the configured timeout."""


class AuthError(QueryError):
    """The database engine rejected the supplied credential."""


class FilesystemError(SqlDiagError):
    """An artifact could not be created, appended to, or renamed."""
