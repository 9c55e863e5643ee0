from .query_executor import OdbcQueryExecutor, QueryExecutor

__all__ = ["OdbcQueryExecutor", "QueryExecutor"]
