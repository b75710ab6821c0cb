"""Core port contracts used by adapters, repository and schema reconciler."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Callable, List, Optional, Protocol, Sequence, Union

from .types import MaybeRow, QueryParams, RowMapping, ServerVersion

RetryHook = Callable[[int, BaseException], None]


class DialectPort(Protocol):
    """Dialect behavior required by statement building and binding."""

    name: str
    paramstyle: str
    native_guid: bool
    text_match_suffix: str

    def q(self, ident: str) -> str: ...

    def placeholder(self, key: str) -> str: ...

    def last_insert_id_sql(self) -> Optional[str]: ...

    def get_lastrowid(self, cursor: Any) -> Optional[int]: ...

    def upsert_clause(self, keys: Sequence[str], columns: Sequence[str]) -> str: ...

    def adapt_value(self, value: Any, db_type: Any) -> Any: ...

    def is_busy_or_locked(self, exc: BaseException) -> bool: ...

    def allows_current_timestamp(self, version: Optional[ServerVersion]) -> bool: ...


class TransactionScope(Protocol):
    """Handle yielded by `DatabasePort.transaction()`."""

    def mark_rollback(self) -> None: ...


class DatabasePort(Protocol):
    """Database adapter behavior required by the core repository."""

    dialect: DialectPort
    config: Any

    @property
    def allow_current_timestamp(self) -> bool: ...

    def transaction(self) -> AbstractContextManager[TransactionScope]: ...

    def execute(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> Any: ...

    def fetchone(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> MaybeRow: ...

    def fetchall(
        self, sql: str, params: QueryParams = None, *, on_retry: Optional[RetryHook] = None
    ) -> List[RowMapping]: ...

    def fetch_scalar(self, sql: str, params: QueryParams = None) -> Any: ...

    def release_locks(self) -> bool: ...

    def is_connected(self) -> bool: ...


class EventSink(Protocol):
    """Fire-and-forget notifications emitted by the engine."""

    def message(self, text: str) -> None: ...

    def error(self, error: Union[BaseException, str]) -> None: ...

    def progress(self, count: int) -> None: ...

    def rows_affected(self, count: int) -> None: ...
