"""DB-API adapter and dialect exports."""

from .connection import ConnectionManager, LockStatus
from .database import Database, Transaction
from .dialects import Dialect, MySQLDialect, SQLiteDialect, dialect_for

__all__ = [
    "ConnectionManager",
    "Database",
    "Dialect",
    "LockStatus",
    "MySQLDialect",
    "SQLiteDialect",
    "Transaction",
    "dialect_for",
]
