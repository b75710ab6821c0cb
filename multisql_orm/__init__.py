"""Dataclass ORM core for MySQL and SQLite."""

from .core import (
    AmbiguousKeyMatch,
    AuditColumns,
    AuditRole,
    BusyOrLocked,
    ConfigurationError,
    ConnectionConfig,
    ConnectionFailure,
    ConstraintViolation,
    IndexSpec,
    InvalidFormat,
    K,
    Key,
    LoggingEventSink,
    ORMError,
    Operator,
    Repository,
    RetryPolicy,
    SchemaReconciler,
    SemanticType,
    StatementBuilder,
    introspect,
    model_schema,
)
from .ports import ConnectionManager, Database, Dialect, MySQLDialect, SQLiteDialect

__all__ = [
    "AmbiguousKeyMatch",
    "AuditColumns",
    "AuditRole",
    "BusyOrLocked",
    "ConfigurationError",
    "ConnectionConfig",
    "ConnectionFailure",
    "ConnectionManager",
    "ConstraintViolation",
    "Database",
    "Dialect",
    "IndexSpec",
    "InvalidFormat",
    "K",
    "Key",
    "LoggingEventSink",
    "MySQLDialect",
    "ORMError",
    "Operator",
    "Repository",
    "RetryPolicy",
    "SQLiteDialect",
    "SchemaReconciler",
    "SemanticType",
    "StatementBuilder",
    "introspect",
    "model_schema",
]
