"""Schema reconciliation: create missing tables, add columns, sync indexes.

Reconciliation is additive. Existing columns are never altered or dropped;
only convention-named indexes (see `schema_indexes`) are created, recreated
or dropped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple, Type

from .contracts import DatabasePort, EventSink
from .errors import ConfigurationError, ORMError, classify_error
from .events import LoggingEventSink
from .metadata import ModelSchema, model_schema
from .models import DataclassModel
from .schema_columns import add_column_sql, can_add_column, column_sql
from .schema_indexes import (
    build_index_sql,
    collect_index_specs,
    drop_index_sql,
    index_name,
    is_managed_index,
)

logger = logging.getLogger(__name__)

LiveIndexes = Dict[str, Tuple[Tuple[str, ...], bool]]


class SchemaReconciler:
    """Keep live tables in step with dataclass models.

    Args:
        db: Database adapter implementing `DatabasePort`.
        events: Notification sink; logs through `logging` when omitted.
    """

    def __init__(self, db: DatabasePort, events: Optional[EventSink] = None):
        self.db = db
        self.d = db.dialect
        self.events: EventSink = events or LoggingEventSink()

    @property
    def is_sqlite(self) -> bool:
        return getattr(self.d, "name", "").lower() == "sqlite"

    def ensure_table(
        self, model: Type[DataclassModel], recreate: bool = False
    ) -> Optional[List[str]]:
        """Create or reconcile the table of `model`.

        Returns the DDL statements executed (empty when the table is already
        current) or `None` when reconciliation failed and was reported.
        With `recreate=True` an existing table is dropped first.
        """

        schema = model_schema(model)
        try:
            exists = self.table_exists(schema.table)
            if exists and not recreate:
                self.events.message(f"table {schema.table} exists")
                statements = self.reconcile_columns(model)
                statements.extend(self.reconcile_indexes(model))
                if not statements:
                    self.events.message(f"no changes made to {schema.table}")
                return statements
            return self._create(schema, drop_first=exists)
        except ConfigurationError:
            raise
        except Exception as exc:
            self.events.error(self._wrap(exc))
            return None

    def table_exists(self, table: str) -> bool:
        ph = self.d.placeholder("table")
        if self.is_sqlite:
            sql = (
                "SELECT 1 AS exists_flag FROM sqlite_master "
                f"WHERE type = 'table' AND name = {ph} LIMIT 1;"
            )
        else:
            sql = (
                "SELECT 1 AS exists_flag FROM information_schema.tables "
                f"WHERE table_schema = DATABASE() AND table_name = {ph} LIMIT 1;"
            )
        return self.db.fetchone(sql, {"table": table}) is not None

    def create_table_sql(self, model: Type[DataclassModel]) -> str:
        """`CREATE TABLE` for `model`, with its key constraint."""

        schema = model_schema(model)
        if not schema.table:
            raise ConfigurationError(f"{model.__name__} has no table name")
        native = self.db.allow_current_timestamp
        definitions = [
            column_sql(spec, self.d, allow_current_timestamp=native)
            for spec in schema.persisted
        ]
        keys = [spec.column for spec in schema.key_fields if not spec.ignored]
        if keys:
            definitions.append(self._key_constraint(schema, keys))
        return (
            f"CREATE TABLE {self.d.q(schema.table)} (\n  "
            + ",\n  ".join(definitions)
            + "\n);"
        )

    def reconcile_columns(self, model: Type[DataclassModel]) -> List[str]:
        """Add declared columns missing from the live table, in one transaction.

        Columns that cannot be added to a populated table (keys, auto,
        auto-dated or required without default) are skipped.
        """

        schema = model_schema(model)
        live = {name.lower() for name in self.live_columns(schema.table)}
        pending = [
            spec
            for spec in schema.persisted
            if spec.column.lower() not in live and can_add_column(spec)
        ]
        if not pending:
            return []
        statements = [add_column_sql(schema.table, spec, self.d) for spec in pending]
        with self.db.transaction():
            for sql in statements:
                self._run_ddl(sql)
        added = ", ".join(spec.column for spec in pending)
        self.events.message(f"columns added to {schema.table}: {added}")
        return statements

    def reconcile_indexes(self, model: Type[DataclassModel]) -> List[str]:
        """Create, recreate or drop convention-named indexes of `model`'s table."""

        schema = model_schema(model)
        if not schema.declares_indexes:
            return []
        table = schema.table
        desired = self._desired_indexes(schema)
        existing = {
            name: shape
            for name, shape in self.live_indexes(table).items()
            if is_managed_index(name)
        }
        statements: List[str] = []

        for name, (columns, unique, create_sql) in desired.items():
            current = existing.get(name)
            if current is None:
                statements.append(create_sql)
            elif current != (columns, unique):
                statements.extend([drop_index_sql(self.d, table, name), create_sql])

        for name in existing:
            if name not in desired:
                statements.append(drop_index_sql(self.d, table, name))

        for sql in statements:
            self._run_ddl(sql)
        if statements:
            self.events.message(f"indexes of {table} synchronized ({len(statements)} statements)")
        return statements

    def live_columns(self, table: str) -> List[str]:
        if self.is_sqlite:
            rows = self.db.fetchall(f"PRAGMA table_info({self.d.q(table)});")
            return [str(_row_get(row, "name")) for row in rows]
        ph = self.d.placeholder("table")
        rows = self.db.fetchall(
            "SELECT column_name FROM information_schema.columns "
            f"WHERE table_schema = DATABASE() AND table_name = {ph} "
            "ORDER BY ordinal_position;",
            {"table": table},
        )
        return [str(_row_get(row, "column_name")) for row in rows]

    def live_indexes(self, table: str) -> LiveIndexes:
        if self.is_sqlite:
            return self._live_indexes_sqlite(table)
        rows = self.db.fetchall(f"SHOW INDEX FROM {self.d.q(table)};")
        return _aggregate_mysql_indexes(rows)

    def _create(self, schema: ModelSchema, *, drop_first: bool) -> List[str]:
        statements: List[str] = []
        if drop_first:
            statements.append(f"DROP TABLE IF EXISTS {self.d.q(schema.table)};")
        statements.append(self.create_table_sql(schema.model))
        statements.extend(create_sql for _, _, create_sql in self._desired_indexes(schema).values())
        with self.db.transaction():
            for sql in statements:
                self._run_ddl(sql)
        self.events.message(f"table {schema.table} created")
        return statements

    def _key_constraint(self, schema: ModelSchema, keys: List[str]) -> str:
        columns = ", ".join(self.d.q(key) for key in keys)
        if self.is_sqlite:
            return f"UNIQUE ({columns})"
        if any(spec.is_auto for spec in schema.persisted):
            return f"UNIQUE KEY {self.d.q('UK_' + schema.table)} ({columns})"
        return f"PRIMARY KEY ({columns})"

    def _desired_indexes(
        self, schema: ModelSchema
    ) -> Dict[str, Tuple[Tuple[str, ...], bool, str]]:
        available = {spec.column for spec in schema.persisted}
        desired: Dict[str, Tuple[Tuple[str, ...], bool, str]] = {}
        for spec in collect_index_specs(schema.model):
            create_sql = build_index_sql(schema.table, spec, self.d, available)
            desired[index_name(schema.table, spec)] = (spec.columns, spec.unique, create_sql)
        return desired

    def _live_indexes_sqlite(self, table: str) -> LiveIndexes:
        rows = self.db.fetchall(f"PRAGMA index_list({self.d.q(table)});")
        existing: LiveIndexes = {}
        for row in rows:
            name = str(_row_get(row, "name"))
            if str(_row_get(row, "origin", default="")).lower() == "pk":
                continue
            unique = bool(_row_get(row, "unique"))
            info_rows = self.db.fetchall(f"PRAGMA index_info({self.d.q(name)});")
            ordered = sorted(info_rows, key=lambda item: int(_row_get(item, "seqno", default=0)))
            existing[name] = (tuple(str(_row_get(item, "name")) for item in ordered), unique)
        return existing

    def _run_ddl(self, sql: str) -> None:
        logger.debug("ddl: %s", sql)
        try:
            self.db.execute(sql)
        except ORMError as exc:
            raise exc.annotate(sql, None)
        except Exception as exc:
            raise classify_error(exc, self.d.is_busy_or_locked, sql=sql) from exc

    def _wrap(self, exc: BaseException) -> ORMError:
        return classify_error(exc, self.d.is_busy_or_locked)


def _aggregate_mysql_indexes(rows: List[Any]) -> LiveIndexes:
    grouped: Dict[str, List[Tuple[int, str]]] = defaultdict(list)
    unique_map: Dict[str, bool] = {}
    for row in rows:
        name = str(_row_get(row, "Key_name", "key_name"))
        if name.upper() == "PRIMARY":
            continue
        column_name = str(_row_get(row, "Column_name", "column_name"))
        position = int(_row_get(row, "Seq_in_index", "seq_in_index", default=1))
        non_unique = _row_get(row, "Non_unique", "non_unique", default=1)
        grouped[name].append((position, column_name))
        unique_map[name] = str(non_unique) in {"0", "False", "false"}

    parsed: LiveIndexes = {}
    for name, columns in grouped.items():
        ordered = tuple(column for _, column in sorted(columns, key=lambda item: item[0]))
        parsed[name] = (ordered, unique_map.get(name, False))
    return parsed


def _row_get(row: Any, *keys: str, default: Any = None) -> Any:
    lowered = {str(key).lower(): value for key, value in row.items()}
    for key in keys:
        if key.lower() in lowered:
            return lowered[key.lower()]
    return default
