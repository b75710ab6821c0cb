"""Repository engine orchestrating statements, transactions and reporting."""

from __future__ import annotations

import socket
import time
from datetime import datetime, timezone
from typing import Any, Callable, Generic, List, Optional, Sequence, Type, Union

from . import repository_batch as _batch
from . import repository_crud as _crud
from .columns import ColumnDescriptor
from .conditions import Key
from .contracts import DatabasePort, EventSink
from .errors import ConfigurationError, ORMError, classify_error
from .events import LoggingEventSink
from .metadata import ModelSchema, model_schema
from .models import AuditRole, T, require_dataclass_model
from .statements import Statement, StatementBuilder

_UNSET = object()


class Repository(Generic[T]):
    """Generic CRUD repository for one dataclass model.

    Failures are reported to the event sink and turned into a `None`,
    `False`, `-1` or empty result. `ConfigurationError` is raised instead.
    """

    LARGE_BATCH = 1000
    CHUNK_SIZE = 200
    IN_LIST_LIMIT = 100
    STAGING_TABLE = "temp_in_use"
    STAGING_COLUMN = "id"
    RELEASE_ATTEMPTS = 3
    RELEASE_DELAY = 0.5

    def __init__(
        self,
        db: DatabasePort,
        model: Type[T],
        events: Optional[EventSink] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Create repository for a model type.

        Args:
            db: Database adapter implementing `DatabasePort`.
            model: Dataclass model type.
            events: Notification sink; logs through `logging` when omitted.
            sleep: Delay function used between lock-release attempts.
        """

        require_dataclass_model(model)
        self.db = db
        self.model = model
        self.d = db.dialect
        self.schema: ModelSchema = model_schema(model)
        self.table = self.schema.table
        self.events: EventSink = events or LoggingEventSink()
        self.config = db.config
        self._sleep = sleep
        self._builder: Optional[StatementBuilder] = None

    @property
    def statements(self) -> StatementBuilder:
        if self._builder is None:
            self._builder = StatementBuilder(
                self.d, allow_current_timestamp=self.db.allow_current_timestamp
            )
        return self._builder

    @property
    def origin(self) -> str:
        return self.config.origin or socket.gethostname()

    # single-row writes

    def insert(self, obj: T) -> Optional[T]:
        """Insert `obj`, then merge DB-assigned fields back into it."""

        return _crud.insert(self, obj)

    def update(self, obj: T) -> Optional[T]:
        """Update the row identified by `obj`'s identity or key columns."""

        return _crud.update(self, obj)

    def update_or_insert(self, obj: T) -> Optional[T]:
        """Select by key; insert when absent, update when exactly one row matches.

        More than one match is reported as `AmbiguousKeyMatch` and nothing
        is written.
        """

        return _crud.update_or_insert(self, obj)

    def upsert(self, obj: T) -> Optional[T]:
        """Single-statement insert-or-update using the dialect conflict clause."""

        return _crud.upsert(self, obj)

    def delete(self, obj: T) -> bool:
        return _crud.delete(self, obj)

    def delete_where(self, keys: Optional[Sequence[Key]]) -> int:
        return _crud.delete_where(self, keys)

    def update_where(self, values: Sequence[Key], where: Sequence[Key]) -> int:
        return _crud.update_where(self, values, where)

    def execute(self, sql: str, keys: Optional[Sequence[Key]] = None) -> int:
        """Run raw SQL (plus an optional rendered WHERE); return rows affected."""

        return _crud.execute(self, sql, keys)

    # batches

    def insert_many(self, objs: Sequence[T]) -> List[T]:
        return _batch.insert_many(self, objs)

    def update_many(self, objs: Sequence[T]) -> List[T]:
        return _batch.update_many(self, objs)

    def delete_many(self, objs: Sequence[T]) -> int:
        return _batch.delete_many(self, objs)

    def bulk_insert(self, objs: Sequence[T]) -> int:
        """Insert with one multi-row statement per chunk; no identities are read back."""

        return _batch.bulk_insert(self, objs)

    def upsert_many(self, objs: Sequence[T]) -> List[T]:
        return _batch.upsert_many(self, objs)

    # reads

    def get(self, ref: Union[T, Sequence[Key]]) -> Optional[T]:
        """First row matching an entity's key selection or explicit keys."""

        return _crud.get(self, ref)

    def get_by_identity(self, value: Any) -> Optional[T]:
        return _crud.get_by_identity(self, value)

    def list(
        self,
        keys: Optional[Sequence[Key]] = None,
        *,
        use_or: bool = False,
        where: Optional[Callable[[T], bool]] = None,
    ) -> Optional[List[T]]:
        """Full table when `keys` is `None`, else rows matching the keys.

        `where` filters the loaded rows in memory. Rows come back in identity
        order when the model has an identity column.
        """

        return _crud.list_rows(self, keys, use_or=use_or, where=where)

    def list_by_identity_range(self, start: int, end: int) -> Optional[List[T]]:
        """Rows whose identity is in `[start, end]`."""

        return _crud.list_by_identity_range(self, start, end)

    def search(self, text: Optional[str]) -> Optional[List[T]]:
        """Look up by identity when `text` is numeric, else by text on the search column.

        The search column is `__search_column__` on the model, or `description`.
        Empty text lists the whole table.
        """

        return _crud.search(self, text)

    def list_between(self, start: datetime, end: datetime) -> Optional[List[T]]:
        """Rows whose insertion timestamp is in `[start, end)`."""

        return _crud.list_between(self, start, end)

    def list_by_ids(self, ids: Sequence[Any], column: Optional[str] = None) -> Optional[List[T]]:
        """Rows whose `column` (identity by default) is one of `ids`."""

        return _batch.list_by_ids(self, ids, column)

    def query(
        self, sql: str, keys: Optional[Sequence[Key]] = None, *, use_or: bool = False
    ) -> Optional[List[T]]:
        return _crud.query(self, sql, keys, use_or=use_or)

    def is_connected(self) -> bool:
        return self.db.is_connected()

    # engine helpers

    def run(self, stmt: Statement) -> Any:
        """Execute one statement; failures come back annotated with it."""

        try:
            return self.db.execute(stmt.sql, stmt.params or None, on_retry=self._on_retry)
        except ORMError as exc:
            raise exc.annotate(stmt.sql, stmt.params)
        except Exception as exc:
            raise self.wrap(exc, stmt) from exc

    def fetch(self, stmt: Statement) -> List[Any]:
        try:
            return self.db.fetchall(stmt.sql, stmt.params or None, on_retry=self._on_retry)
        except ORMError as exc:
            raise exc.annotate(stmt.sql, stmt.params)
        except Exception as exc:
            raise self.wrap(exc, stmt) from exc

    def wrap(self, exc: BaseException, stmt: Optional[Statement] = None) -> ORMError:
        """Map a driver exception onto the error taxonomy."""

        return classify_error(
            exc,
            self.d.is_busy_or_locked,
            sql=stmt.sql if stmt else None,
            params=stmt.params if stmt else None,
        )

    def report(self, exc: BaseException) -> None:
        """Forward a failure to the event sink; configuration errors are raised."""

        if isinstance(exc, ConfigurationError):
            raise exc
        self.events.error(exc if isinstance(exc, ORMError) else self.wrap(exc))

    def verbose(self, text: str) -> None:
        if self.config.verbose:
            self.events.message(text)

    def stamp(self, obj: Any, columns: Sequence[ColumnDescriptor], *, inserting: bool) -> None:
        """Apply audit values to descriptors and to `obj` before binding.

        Origin is always stamped and the acting user when one is configured.
        Timestamps are stamped only when the backend does not default them.
        """

        native = self.db.allow_current_timestamp
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        user = self.config.user
        for column in columns:
            spec = column.spec
            if spec.ignored:
                continue
            value: Any = _UNSET
            if spec.audit_role is AuditRole.ORIGIN:
                value = self.origin
            elif spec.audit_role is AuditRole.INSERTED_BY and inserting and user:
                value = user
            elif spec.audit_role is AuditRole.UPDATED_BY and user:
                value = user
            elif not native and spec.auto_update_date:
                value = now
            elif not native and spec.auto_insert_date and inserting:
                value = now
            if value is _UNSET:
                continue
            column.value = value
            setattr(obj, spec.attr, value)
        if inserting:
            self.verbose(f"{self.table}: insert audit fields stamped")
        else:
            self.verbose(f"{self.table}: update audit fields stamped")

    def chunks(self, items: Sequence[Any]) -> List[Sequence[Any]]:
        """Split lists above `LARGE_BATCH` into `CHUNK_SIZE` pieces."""

        if len(items) <= self.LARGE_BATCH:
            return [items] if items else []
        return [items[i : i + self.CHUNK_SIZE] for i in range(0, len(items), self.CHUNK_SIZE)]

    def release_and_wait(self, attempt: int) -> None:
        self.verbose(f"{self.table}: releasing locks, attempt {attempt}")
        self.db.release_locks()
        self._sleep(self.RELEASE_DELAY * attempt)

    def _on_retry(self, attempt: int, exc: BaseException) -> None:
        self.verbose(f"{self.table}: busy/locked, retry {attempt}: {exc}")
