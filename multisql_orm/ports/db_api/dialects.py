"""Concrete SQL dialect implementations for DB-API adapters."""

from __future__ import annotations

import re
import sqlite3
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from ...core.config import ConnectionConfig
from ...core.errors import ConfigurationError
from ...core.types import ServerVersion

_SQLITE_BUSY = 5
_SQLITE_LOCKED = 6
_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked", "database is busy")

_MYSQL_LOCK_WAIT_TIMEOUT = 1205


class Dialect:
    """Base dialect that defines SQL quoting and placeholder behavior."""

    name: str = "generic"
    paramstyle: str = "named"
    open_quote: str = '"'
    close_quote: str = '"'
    native_guid: bool = True
    text_match_suffix: str = ""
    server_version_sql: Optional[str] = None

    def __init__(
        self, *, open_quote: Optional[str] = None, close_quote: Optional[str] = None
    ) -> None:
        if open_quote is not None:
            self.open_quote = open_quote
        if close_quote is not None:
            self.close_quote = close_quote

    def q(self, ident: str) -> str:
        """Quote SQL identifier."""

        return f"{self.open_quote}{ident}{self.close_quote}"

    def placeholder(self, key: str) -> str:
        """Return parameter placeholder for current param style."""

        if self.paramstyle == "named":
            return f":{key}"
        if self.paramstyle == "pyformat":
            return f"%({key})s"
        raise ValueError(f"Unsupported paramstyle: {self.paramstyle}")

    def last_insert_id_sql(self) -> Optional[str]:
        """Follow-up query returning the identity generated by the last insert."""

        return None

    def get_lastrowid(self, cursor: Any) -> Optional[int]:
        """Extract `lastrowid` from DB-API cursor when available."""

        value = getattr(cursor, "lastrowid", None)
        return value if value else None

    def upsert_clause(self, keys: Sequence[str], columns: Sequence[str]) -> str:
        """Conflict clause appended to an INSERT; empty when unsupported."""

        return ""

    def adapt_value(self, value: Any, db_type: Any) -> Any:
        return value

    def is_busy_or_locked(self, exc: BaseException) -> bool:
        return False

    def allows_current_timestamp(self, version: Optional[ServerVersion]) -> bool:
        """Whether DATETIME columns may default to `CURRENT_TIMESTAMP`."""

        return False


class SQLiteDialect(Dialect):
    """SQLite dialect (`:name` parameters, GUIDs stored as 16-byte BLOBs)."""

    name = "sqlite"
    paramstyle = "named"
    open_quote = '"'
    close_quote = '"'
    native_guid = False
    text_match_suffix = " COLLATE NOCASE"
    server_version_sql = "SELECT sqlite_version();"

    def last_insert_id_sql(self) -> Optional[str]:
        return "SELECT last_insert_rowid();"

    def upsert_clause(self, keys: Sequence[str], columns: Sequence[str]) -> str:
        if not keys:
            return ""
        conflict = ", ".join(self.q(key) for key in keys)
        updates = [column for column in columns if column not in keys]
        if not updates:
            return f" ON CONFLICT ({conflict}) DO NOTHING"
        assignments = ", ".join(f"{self.q(c)} = excluded.{self.q(c)}" for c in updates)
        return f" ON CONFLICT ({conflict}) DO UPDATE SET {assignments}"

    def adapt_value(self, value: Any, db_type: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=" ", timespec="microseconds")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, time):
            return value.isoformat(timespec="microseconds")
        if isinstance(value, timedelta):
            return (datetime.min + value).time().isoformat(timespec="microseconds")
        if isinstance(value, uuid.UUID):
            return value.bytes_le
        return value

    def is_busy_or_locked(self, exc: BaseException) -> bool:
        if not isinstance(exc, sqlite3.Error):
            return False
        code = getattr(exc, "sqlite_errorcode", None)
        if isinstance(code, int) and (code & 0xFF) in (_SQLITE_BUSY, _SQLITE_LOCKED):
            return True
        message = str(exc).lower()
        return any(text in message for text in _SQLITE_LOCK_MESSAGES)


class MySQLDialect(Dialect):
    """MySQL dialect (`%(name)s` parameters, backtick quoting)."""

    name = "mysql"
    paramstyle = "pyformat"
    open_quote = "`"
    close_quote = "`"
    native_guid = True
    server_version_sql = "SELECT VERSION();"

    def last_insert_id_sql(self) -> Optional[str]:
        return "SELECT LAST_INSERT_ID();"

    def upsert_clause(self, keys: Sequence[str], columns: Sequence[str]) -> str:
        updates = [column for column in columns if column not in keys] or list(keys)
        if not updates:
            return ""
        assignments = ", ".join(f"{self.q(c)} = VALUES({self.q(c)})" for c in updates)
        return f" ON DUPLICATE KEY UPDATE {assignments}"

    def adapt_value(self, value: Any, db_type: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    def is_busy_or_locked(self, exc: BaseException) -> bool:
        args = getattr(exc, "args", ())
        if args and args[0] == _MYSQL_LOCK_WAIT_TIMEOUT:
            return True
        return "lock wait timeout" in str(exc).lower()

    def allows_current_timestamp(self, version: Optional[ServerVersion]) -> bool:
        return version is not None and tuple(version[:2]) >= (5, 7)


_DIALECTS = {"sqlite": SQLiteDialect, "mysql": MySQLDialect}


def dialect_for(config: ConnectionConfig) -> Dialect:
    """Build the dialect named by `config.dialect` with its quoting pair."""

    factory = _DIALECTS.get(config.dialect.lower())
    if factory is None:
        raise ConfigurationError(f"Unsupported dialect: {config.dialect!r}")
    return factory(open_quote=config.open_quote, close_quote=config.close_quote)


def parse_server_version(raw: Any) -> Optional[ServerVersion]:
    """Parse `'8.0.36-log'` style version text into `(8, 0, 36)`."""

    if raw is None:
        return None
    match = re.match(r"\s*(\d+(?:\.\d+)*)", str(raw))
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))
