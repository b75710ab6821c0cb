"""Column SQL helpers used by schema generation."""

from __future__ import annotations

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, List

from .contracts import DialectPort
from .metadata import FieldSpec, SemanticType

DEFAULT_DOUBLE_SIZE = "(18, 10)"
DEFAULT_MONEY_SIZE = "(18, 4)"
DEFAULT_VARCHAR_SIZE = "(255)"


def column_sql(spec: FieldSpec, dialect: DialectPort, *, allow_current_timestamp: bool) -> str:
    """Build one `CREATE TABLE` column definition."""

    type_sql = column_type_sql(spec, dialect, allow_current_timestamp=allow_current_timestamp)
    parts = [dialect.q(spec.column), type_sql]
    if spec.is_key or spec.is_auto or not spec.nullable:
        if spec.is_auto and _is_sqlite(dialect):
            parts.append("PRIMARY KEY")
        else:
            parts.append("NOT NULL")
    else:
        parts.append("NULL")
    return " ".join(parts)


def add_column_sql(table: str, spec: FieldSpec, dialect: DialectPort) -> str:
    """`ALTER TABLE ... ADD COLUMN` for a nullable or defaulted column.

    Backend-managed timestamp defaults are never part of an added column.
    """

    type_sql = column_type_sql(spec, dialect, allow_current_timestamp=False)
    nullability = "NULL" if spec.nullable else "NOT NULL"
    return (
        f"ALTER TABLE {dialect.q(table)} ADD COLUMN "
        f"{dialect.q(spec.column)} {type_sql} {nullability};"
    )


def can_add_column(spec: FieldSpec) -> bool:
    """Whether a missing column may be added to a table that already has rows."""

    if spec.ignored or spec.is_key or spec.is_auto:
        return False
    if spec.auto_insert_date or spec.auto_update_date:
        return False
    return spec.nullable or spec.default is not None


def column_type_sql(spec: FieldSpec, dialect: DialectPort, *, allow_current_timestamp: bool) -> str:
    """SQL type of one column plus its DEFAULT clause."""

    mysql = not _is_sqlite(dialect)
    kind = spec.semantic_type
    parts: List[str] = []
    default = spec.default

    if kind is SemanticType.BOOL:
        parts.append("tinyint(1)" if mysql else "INTEGER")
        if not spec.nullable:
            if default is not None:
                parts.append(f"DEFAULT {sql_literal(default)}")
            else:
                parts.append("DEFAULT 0" if mysql else "DEFAULT (0)")
        return " ".join(parts)

    if kind is SemanticType.DATE:
        parts.append("DATETIME")
        if allow_current_timestamp and (not spec.nullable or spec.auto_insert_date):
            parts.append("DEFAULT CURRENT_TIMESTAMP")
        elif default is not None:
            parts.append(f"DEFAULT {sql_literal(default)}")
        if mysql and allow_current_timestamp and spec.auto_update_date:
            parts.append("ON UPDATE CURRENT_TIMESTAMP(0)")
        return " ".join(parts)

    if kind is SemanticType.DOUBLE:
        size = spec.size if spec.size and spec.size != "MAX" else DEFAULT_DOUBLE_SIZE
        parts.append(("DECIMAL" if mysql else "REAL") + size)
    elif kind is SemanticType.MONEY:
        parts.append(("DECIMAL" if mysql else "REAL") + DEFAULT_MONEY_SIZE)
    elif kind is SemanticType.ENUM:
        parts.append("TINYINT" if mysql else "INTEGER")
        parts.append(f"DEFAULT {sql_literal(default) if default is not None else 0}")
        return " ".join(parts)
    elif kind is SemanticType.GUID:
        if mysql:
            parts.append("VARCHAR(36)")
        else:
            parts.append("BLOB")
            if default is not None:
                parts.append(f"DEFAULT {_guid_blob_literal(default)}")
            return " ".join(parts)
    elif kind is SemanticType.TIME:
        parts.append("TIME(0)" if mysql else "DATETIME")
    elif kind is SemanticType.INT:
        if mysql:
            parts.append("BIGINT")
            if spec.is_auto:
                parts.append("PRIMARY KEY AUTO_INCREMENT")
        else:
            parts.append("INTEGER")
    elif kind is SemanticType.BLOB:
        return "MEDIUMBLOB" if mysql else "BLOB"
    else:
        if not mysql:
            parts.append("TEXT COLLATE NOCASE")
        elif spec.size == "MAX":
            parts.append("LONGTEXT")
        else:
            parts.append("VARCHAR" + (spec.size or DEFAULT_VARCHAR_SIZE))

    if default is not None:
        parts.append(f"DEFAULT {sql_literal(default)}")
    return " ".join(parts)


def sql_literal(value: Any) -> str:
    """Render a `default` metadata value as SQL text.

    Strings are emitted as written so expressions such as
    `CURRENT_TIMESTAMP` or `'text'` pass through unchanged.
    """

    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, uuid.UUID):
        return f"'{value}'"
    return str(value)


def _guid_blob_literal(value: Any) -> str:
    if isinstance(value, uuid.UUID):
        return f"X'{value.bytes_le.hex()}'"
    return f"X'{value}'"


def _is_sqlite(dialect: DialectPort) -> bool:
    return getattr(dialect, "name", "").lower() == "sqlite"
