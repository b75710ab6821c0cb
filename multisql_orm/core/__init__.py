"""Public core API for entity introspection, statements, schema and repositories."""

from .binder import BoundParameter, DbType, bind, normalize_guid
from .columns import ColumnDescriptor, introspect
from .conditions import K, Key, Operator
from .config import ConnectionConfig
from .errors import (
    AmbiguousKeyMatch,
    BusyOrLocked,
    ConfigurationError,
    ConnectionFailure,
    ConstraintViolation,
    InvalidFormat,
    ORMError,
)
from .events import LoggingEventSink
from .metadata import FieldSpec, ModelSchema, SemanticType, model_schema
from .models import AuditColumns, AuditRole, DataclassModel, table_name
from .query_builder import KeySelection, KeyStrategy, render_predicate, select_key
from .repository import Repository
from .retry import RetryPolicy, RetryState, execute_with_retry
from .schema import SchemaReconciler
from .schema_indexes import IndexSpec
from .statements import Statement, StatementBuilder

__all__ = [
    "AmbiguousKeyMatch",
    "AuditColumns",
    "AuditRole",
    "BoundParameter",
    "BusyOrLocked",
    "ColumnDescriptor",
    "ConfigurationError",
    "ConnectionConfig",
    "ConnectionFailure",
    "ConstraintViolation",
    "DataclassModel",
    "DbType",
    "FieldSpec",
    "IndexSpec",
    "InvalidFormat",
    "K",
    "Key",
    "KeySelection",
    "KeyStrategy",
    "LoggingEventSink",
    "ModelSchema",
    "ORMError",
    "Operator",
    "Repository",
    "RetryPolicy",
    "RetryState",
    "SchemaReconciler",
    "SemanticType",
    "Statement",
    "StatementBuilder",
    "bind",
    "execute_with_retry",
    "introspect",
    "model_schema",
    "normalize_guid",
    "render_predicate",
    "select_key",
    "table_name",
]
