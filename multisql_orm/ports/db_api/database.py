"""DB-API adapter implementation for the core database port."""

from __future__ import annotations

import contextlib
import gc
import logging
from collections.abc import Callable, Iterator
from typing import Any, Mapping, Optional

from ...core.contracts import RetryHook
from ...core.retry import RetryPolicy
from ...core.types import MaybeRow, QueryParams, RowMapping, Rows
from .connection import ConnectionManager
from .dialects import Dialect

logger = logging.getLogger(__name__)



class Transaction:
    """Scope handle; `mark_rollback()` discards the work on exit."""

    def __init__(self) -> None:
        self.rollback_only = False

    def mark_rollback(self) -> None:
        self.rollback_only = True


class Database:
    """Thin DB-API wrapper over a `ConnectionManager`.

    Statements run through a `RetryPolicy` built from the dialect's
    busy/locked classifier and the config's lock retry settings.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        retry: Optional[RetryPolicy] = None,
    ):
        """Create database adapter.

        Args:
            manager: Connection provider owned by this adapter.
            retry: Statement retry policy; built from the config when omitted.
        """

        self.manager = manager
        self.config = manager.config
        self.dialect: Dialect = manager.dialect
        self.retry = retry or RetryPolicy(
            self.dialect.is_busy_or_locked,
            max_retries=self.config.lock_retries,
            base_delay=self.config.lock_retry_delay,
        )
        self._tx: Optional[Transaction] = None

    @classmethod
    def connect(cls, config: Any, connect: Callable[..., Any], *args: Any, **kwargs: Any) -> Database:
        """Shortcut building the `ConnectionManager` as well."""

        return cls(ConnectionManager(config, connect, *args, **kwargs))

    @property
    def conn(self) -> Any:
        return self.manager.acquire()

    @property
    def allow_current_timestamp(self) -> bool:
        return self.manager.allow_current_timestamp

    @property
    def in_transaction(self) -> bool:
        return self._tx is not None

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Provide commit/rollback transaction scope.

        Nested scopes join the outer transaction.
        """

        if self._tx is not None:
            yield self._tx
            return

        conn = self.conn
        tx = Transaction()
        self._begin(conn)
        self._tx = tx
        try:
            yield tx
        except BaseException:
            self._tx = None
            conn.rollback()
            raise
        self._tx = None
        if tx.rollback_only:
            conn.rollback()
        else:
            conn.commit()

    def execute(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> Any:
        """Execute SQL with optional parameters and return cursor.

        `on_retry(attempt, error)` is called before each busy/locked retry.
        """

        return self.retry.execute(
            lambda: self._execute_once(sql, params),
            on_retry=lambda attempt, exc: self._on_retry(attempt, exc, on_retry),
        )

    def _execute_once(self, sql: str, params: QueryParams) -> Any:
        cur = self.conn.cursor()
        if params is None:
            cur.execute(sql)
        else:
            cur.execute(sql, params)
        return cur

    def _begin(self, conn: Any) -> None:
        if self.dialect.name == "sqlite":
            if not bool(getattr(conn, "in_transaction", False)):
                self.execute("BEGIN")
            return
        begin = getattr(conn, "begin", None)
        if callable(begin):
            begin()

    def _on_retry(
        self, attempt: int, exc: BaseException, hook: Optional[RetryHook]
    ) -> None:
        logger.warning("statement busy/locked, retry %d: %s", attempt, exc)
        gc.collect()
        if hook is not None:
            hook(attempt, exc)

    def fetchone(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> MaybeRow:
        cur = self.execute(sql, params, on_retry=on_retry)
        row = cur.fetchone()
        return None if row is None else _as_mapping(cur, row)

    def fetchall(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> Rows:
        """Rows as mappings keyed by column name, whatever the driver's row type."""

        cur = self.execute(sql, params, on_retry=on_retry)
        return [_as_mapping(cur, row) for row in cur.fetchall()]

    def fetch_scalar(self, sql: str, params: QueryParams = None) -> Any:
        row = self.fetchone(sql, params)
        if row is None:
            return None
        return next(iter(row.values()), None)

    def last_insert_id(self, cursor: Any, identity_sql: Optional[str]) -> Optional[int]:
        """Identity generated by the insert run on `cursor`."""

        value = self.dialect.get_lastrowid(cursor)
        if value is None and identity_sql:
            value = self.fetch_scalar(identity_sql)
        return int(value) if value is not None else None

    def release_locks(self) -> bool:
        return self.manager.release_locks()

    def is_connected(self) -> bool:
        return self.manager.is_server_connected()

    def close(self) -> None:
        """Close the underlying connection."""

        self.manager.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


def _as_mapping(cursor: Any, row: Any) -> RowMapping:
    if isinstance(row, Mapping):
        return row
    if not isinstance(row, (tuple, list)):
        raise TypeError(f"unsupported row type {type(row).__name__}")
    if not cursor.description:
        raise TypeError("cursor has no description for positional rows")
    return {column[0]: value for column, value in zip(cursor.description, row)}
