"""Single-connection provider with bounded reconnect and SQLite tuning."""

from __future__ import annotations

import gc
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from ...core.config import ConnectionConfig
from ...core.errors import ConnectionFailure
from ...core.types import ServerVersion
from .dialects import Dialect, dialect_for, parse_server_version

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30.0
SQLITE_BUSY_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class LockStatus:
    """Snapshot of a SQLite file's locking state."""

    connected: bool
    journal_mode: Optional[str] = None
    wal_busy: Optional[int] = None
    wal_log_frames: Optional[int] = None
    wal_checkpointed_frames: Optional[int] = None
    can_write: bool = False
    error: Optional[str] = None


class ConnectionManager:
    """Owns at most one live DB-API connection.

    Args:
        config: Connection settings.
        connect: DB-API `connect` callable (for example `sqlite3.connect`
            or `pymysql.connect`).
        *connect_args: Positional arguments for `connect`.
        sleep: Delay function used between attempts.
        **connect_kwargs: Keyword arguments for `connect`.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connect: Callable[..., Any],
        *connect_args: Any,
        sleep: Callable[[float], None] = time.sleep,
        **connect_kwargs: Any,
    ):
        self.config = config
        self.dialect: Dialect = dialect_for(config)
        self._connect = connect
        self._connect_args = connect_args
        self._connect_kwargs = dict(connect_kwargs)
        self._sleep = sleep
        self._conn: Any = None
        self._server_version: Optional[ServerVersion] = None
        self._version_resolved = False
        if self.is_sqlite:
            self._inject_sqlite_settings()
        else:
            self._inject_mysql_settings()

    @property
    def is_sqlite(self) -> bool:
        return self.dialect.name == "sqlite"

    @property
    def connected(self) -> bool:
        return self._conn is not None and _is_usable(self._conn)

    def acquire(
        self, max_attempts: Optional[int] = None, delay_seconds: Optional[float] = None
    ) -> Any:
        """Return the open connection, opening it with bounded retries.

        Raises:
            ConnectionFailure: every attempt failed.
        """

        if self._conn is not None and _is_usable(self._conn):
            return self._conn

        attempts = max_attempts or self.config.reconnect_attempts
        delay = delay_seconds or self.config.reconnect_delay
        last_error: Optional[BaseException] = None
        for attempt in range(attempts + 1):
            try:
                conn = self._connect(*self._connect_args, **self._connect_kwargs)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "connection attempt %d/%d failed: %s", attempt + 1, attempts + 1, exc
                )
                if attempt < attempts:
                    self._sleep(delay)
                continue
            self._conn = conn
            self._configure(conn)
            return conn

        raise ConnectionFailure(
            f"could not connect to {self.dialect.name} after {attempts + 1} attempts"
        ) from last_error

    @property
    def server_version(self) -> Optional[ServerVersion]:
        """Server version tuple, resolved once per manager."""

        if not self._version_resolved:
            self.acquire()
        return self._server_version

    @property
    def allow_current_timestamp(self) -> bool:
        if self.config.allow_current_timestamp is not None:
            return self.config.allow_current_timestamp
        return self.dialect.allows_current_timestamp(self.server_version)

    def reset_connection(self) -> None:
        """Close the connection and drop every reference to it."""

        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.close()
            except Exception as exc:
                logger.debug("close during reset failed: %s", exc)
        gc.collect()

    def release_locks(self) -> bool:
        """Reopen the connection and checkpoint/shrink a SQLite file."""

        self.reset_connection()
        try:
            conn = self.acquire()
        except ConnectionFailure as exc:
            logger.error("release locks: %s", exc)
            return False
        if not self.is_sqlite:
            return True
        try:
            _run(conn, "PRAGMA busy_timeout = 0;")
            _run(conn, "PRAGMA wal_checkpoint(TRUNCATE);")
            _run(conn, "PRAGMA shrink_memory;")
            _run(conn, f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS};")
        except Exception as exc:
            logger.warning("release locks failed: %s", exc)
            return False
        return True

    def is_server_connected(self) -> bool:
        try:
            _scalar(self.acquire(), "SELECT 1;")
        except Exception as exc:
            logger.debug("server check failed: %s", exc)
            return False
        return True

    def lock_status(self) -> LockStatus:
        """Report journal mode, WAL frames and whether a write lock is obtainable."""

        try:
            conn = self.acquire()
        except ConnectionFailure as exc:
            return LockStatus(connected=False, error=str(exc))
        if not self.is_sqlite:
            return LockStatus(connected=True, can_write=True)
        try:
            journal_mode = str(_scalar(conn, "PRAGMA journal_mode;"))
            wal_row = None
            if journal_mode.lower() == "wal":
                wal_row = _row(conn, "PRAGMA wal_checkpoint(PASSIVE);")
            can_write = True
            try:
                _run(conn, "BEGIN IMMEDIATE;")
                _run(conn, "ROLLBACK;")
            except Exception as exc:
                logger.debug("write check failed: %s", exc)
                can_write = False
            return LockStatus(
                connected=True,
                journal_mode=journal_mode,
                wal_busy=wal_row[0] if wal_row else None,
                wal_log_frames=wal_row[1] if wal_row else None,
                wal_checkpointed_frames=wal_row[2] if wal_row else None,
                can_write=can_write,
            )
        except Exception as exc:
            return LockStatus(connected=True, error=str(exc))

    def schema_version(self) -> Optional[int]:
        """SQLite `PRAGMA schema_version`; `None` for other dialects."""

        if not self.is_sqlite:
            return None
        value = _scalar(self.acquire(), "PRAGMA schema_version;")
        return int(value) if value is not None else None

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def _configure(self, conn: Any) -> None:
        if self.is_sqlite:
            if getattr(conn, "isolation_level", None) is not None:
                conn.isolation_level = None
            try:
                _run(conn, "PRAGMA journal_mode=WAL;")
            except Exception as exc:
                logger.warning("could not enable WAL journal mode: %s", exc)
        else:
            autocommit = getattr(conn, "autocommit", None)
            if callable(autocommit):
                autocommit(True)
            elif autocommit is not None:
                conn.autocommit = True

        if not self._version_resolved and self.dialect.server_version_sql:
            try:
                self._server_version = parse_server_version(
                    _scalar(conn, self.dialect.server_version_sql)
                )
            except Exception as exc:
                logger.warning("could not read server version: %s", exc)
            self._version_resolved = True

    def _inject_sqlite_settings(self) -> None:
        if not _is_sqlite_connect(self._connect):
            return
        if len(self._connect_args) < 2:
            self._connect_kwargs.setdefault("timeout", SQLITE_BUSY_TIMEOUT_SECONDS)
        if len(self._connect_args) < 4:
            self._connect_kwargs.setdefault("isolation_level", None)

    def _inject_mysql_settings(self) -> None:
        # rowcount must count matched rows, not only changed ones
        if not _is_pymysql_connect(self._connect):
            return
        from pymysql.constants import CLIENT

        flags = self._connect_kwargs.get("client_flag", 0)
        self._connect_kwargs["client_flag"] = flags | CLIENT.FOUND_ROWS


def _is_pymysql_connect(connect: Callable[..., Any]) -> bool:
    target = getattr(connect, "func", connect)
    return (getattr(target, "__module__", "") or "").startswith("pymysql")


def _is_sqlite_connect(connect: Callable[..., Any]) -> bool:
    target = getattr(connect, "func", connect)
    module_name = getattr(target, "__module__", "") or ""
    return module_name.startswith("sqlite3") or module_name.startswith("_sqlite3")


def _is_usable(conn: Any) -> bool:
    open_flag = getattr(conn, "open", None)
    if isinstance(open_flag, bool):
        return open_flag
    try:
        conn.cursor().close()
    except Exception:
        return False
    return True


def _run(conn: Any, sql: str) -> Any:
    cur = conn.cursor()
    try:
        cur.execute(sql)
        return cur.fetchall() if cur.description else None
    finally:
        cur.close()


def _row(conn: Any, sql: str) -> Any:
    rows = _run(conn, sql)
    return rows[0] if rows else None


def _scalar(conn: Any, sql: str) -> Any:
    row = _row(conn, sql)
    if row is None:
        return None
    if isinstance(row, dict):
        return next(iter(row.values()), None)
    return row[0]
