"""Public port exports for concrete adapter implementations."""

from .db_api import ConnectionManager, Database, Dialect, MySQLDialect, SQLiteDialect

__all__ = [
    "ConnectionManager",
    "Database",
    "Dialect",
    "MySQLDialect",
    "SQLiteDialect",
]
