"""Dialect-aware SQL statement assembly from column descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .binder import bind
from .columns import ColumnDescriptor, identity_column, positive_int
from .conditions import Key
from .contracts import DialectPort
from .errors import ConfigurationError
from .metadata import SemanticType
from .models import AuditRole
from .query_builder import KeyStrategy, ParamNames, qualified, render_predicate, select_key
from .types import NamedParams


@dataclass(frozen=True)
class Statement:
    """SQL text, its named parameters and an optional identity follow-up query."""

    sql: str
    params: NamedParams = field(default_factory=dict)
    identity_sql: Optional[str] = None


class StatementBuilder:
    """Builds SELECT/INSERT/UPDATE/DELETE/UPSERT statements for one dialect."""

    def __init__(self, dialect: DialectPort, *, allow_current_timestamp: bool = False):
        self.dialect = dialect
        self.allow_current_timestamp = allow_current_timestamp

    def select(
        self,
        table: str,
        keys: Sequence[Any] = (),
        *,
        use_or: bool = False,
        order_by: Optional[str] = None,
    ) -> Statement:
        """`SELECT *` filtered by `keys`, ordered by `order_by` when given."""

        if not table:
            raise ConfigurationError("table name is required")
        where = render_predicate(keys, self.dialect, use_or=use_or)
        order = f" ORDER BY {self.dialect.q(order_by)}" if order_by else ""
        return Statement(f"SELECT * FROM {self.dialect.q(table)}{where.sql}{order};", where.params)

    def select_by_key(self, table: str, columns: Sequence[ColumnDescriptor]) -> Statement:
        """Select the row(s) identified by the key selection of `columns`."""

        selection = select_key(columns)
        identity = identity_column(columns)
        return self.select(
            table, selection.columns, order_by=identity.column if identity else None
        )

    def insert(
        self,
        table: str,
        columns: Sequence[ColumnDescriptor],
        *,
        return_identity: bool = True,
    ) -> Statement:
        """INSERT with every writable column.

        Backend-generated autoincrement columns are left out; GUID
        autoincrement columns are written. When `return_identity` is set and
        the model has an identity column, the statement carries the dialect's
        last-insert-id query.
        """

        names = ParamNames()
        cols_sql: List[str] = []
        placeholders: List[str] = []
        params: NamedParams = {}
        for column in self.insert_columns(columns):
            name = names.take(column.column)
            cols_sql.append(self.dialect.q(column.column))
            placeholders.append(self.dialect.placeholder(name))
            params[name] = bind(column, self.dialect, name).value

        identity_sql = None
        if return_identity and identity_column(columns) is not None:
            identity_sql = self.dialect.last_insert_id_sql()
        if not cols_sql and self.dialect.name == "sqlite":
            return Statement(f"INSERT INTO {self.dialect.q(table)} DEFAULT VALUES;", {}, identity_sql)
        sql = (
            f"INSERT INTO {self.dialect.q(table)} ({', '.join(cols_sql)}) "
            f"VALUES ({', '.join(placeholders)});"
        )
        return Statement(sql, params, identity_sql)

    def insert_columns(self, columns: Sequence[ColumnDescriptor]) -> List[ColumnDescriptor]:
        return [
            column
            for column in columns
            if column.editable(self.allow_current_timestamp)
            and not column.spec.only_update
            and not (column.is_auto and column.semantic_type is not SemanticType.GUID)
        ]

    def update(self, table: str, columns: Sequence[ColumnDescriptor]) -> Statement:
        """UPDATE by positive identity when present, else by key columns.

        Raises:
            ConfigurationError: neither an identity value nor key columns.
        """

        selection = select_key(columns)
        if selection.strategy is KeyStrategy.IDENTITY:
            return self.update_by_identity(table, columns)
        if selection.strategy is KeyStrategy.KEYS:
            return self.update_by_key(table, columns)
        raise ConfigurationError(
            f"cannot update {table!r} without an identity value or key columns"
        )

    def update_by_key(self, table: str, columns: Sequence[ColumnDescriptor]) -> Statement:
        keys = [column for column in columns if column.is_key and not column.ignored]
        if not keys:
            raise ConfigurationError(f"cannot update {table!r} without key columns")
        settable = [c for c in columns if self._settable(c) and not c.is_key]
        return self._update_statement(table, settable, keys)

    def update_by_identity(
        self, table: str, columns: Sequence[ColumnDescriptor]
    ) -> Statement:
        identity = next((c for c in columns if c.is_auto and not c.ignored), None)
        if identity is None:
            raise ConfigurationError(f"{table!r} has no autoincrement column")
        if not positive_int(identity.value):
            raise ConfigurationError(
                f"autoincrement column {identity.column!r} has no value to update by"
            )
        settable = [c for c in columns if self._settable(c)]
        return self._update_statement(table, settable, [identity])

    def update_where(self, table: str, values: Sequence[Key], where: Sequence[Key]) -> Statement:
        """`UPDATE table SET values WHERE where` from explicit keys."""

        if not values:
            raise ConfigurationError("update requires at least one column to set")
        if not where:
            raise ConfigurationError("cannot update without a reference for WHERE")
        names = ParamNames()
        assignments: List[str] = []
        params: NamedParams = {}
        for key in values:
            name = names.take(f"set_{key.param or key.column}")
            assignments.append(f"{self.dialect.q(key.column)} = {self.dialect.placeholder(name)}")
            params[name] = bind(key, self.dialect, name).value
        predicate = render_predicate(where, self.dialect, names=names)
        params.update(predicate.params)
        sql = f"UPDATE {self.dialect.q(table)} SET {', '.join(assignments)}{predicate.sql};"
        return Statement(sql, params)

    def upsert(self, table: str, columns: Sequence[ColumnDescriptor]) -> Optional[Statement]:
        """INSERT plus the dialect's conflict clause; `None` when unsupported.

        Raises:
            ConfigurationError: the model has no key columns to conflict on.
        """

        keys = [column.column for column in columns if column.is_key and not column.ignored]
        if not keys:
            raise ConfigurationError(f"cannot upsert into {table!r} without key columns")
        insert = self.insert(table, columns, return_identity=False)
        updatable = [c.column for c in self.insert_columns(columns) if self._settable(c)]
        clause = self.dialect.upsert_clause(keys, updatable)
        if not clause:
            return None
        sql = insert.sql.rstrip(";") + clause + ";"
        return Statement(sql, insert.params)

    def delete(self, table: str, columns: Sequence[ColumnDescriptor]) -> Statement:
        """DELETE by the key selection of `columns`.

        Raises:
            ConfigurationError: nothing identifies the row.
        """

        selection = select_key(columns)
        if not selection:
            raise ConfigurationError("cannot delete without a reference for WHERE")
        return self.delete_where(table, selection.columns)

    def delete_where(self, table: str, keys: Sequence[Any]) -> Statement:
        if not keys:
            raise ConfigurationError("cannot delete without a reference for WHERE")
        predicate = render_predicate(keys, self.dialect)
        return Statement(f"DELETE FROM {self.dialect.q(table)}{predicate.sql};", predicate.params)

    def multi_insert(
        self, table: str, rows: Sequence[Sequence[ColumnDescriptor]]
    ) -> Statement:
        """One INSERT with a VALUES group per row; parameters suffixed by row index."""

        if not rows:
            raise ConfigurationError("multi-row insert requires at least one row")
        header = self.insert_columns(rows[0])
        wanted = [column.column for column in header]
        names = ParamNames()
        params: NamedParams = {}
        groups: List[str] = []
        for index, row in enumerate(rows):
            by_column = {column.column: column for column in row}
            placeholders = []
            for column_name in wanted:
                column = by_column[column_name]
                name = names.take(f"{column_name}_{index}")
                placeholders.append(self.dialect.placeholder(name))
                params[name] = bind(column, self.dialect, name).value
            groups.append(f"({', '.join(placeholders)})")
        cols_sql = ", ".join(self.dialect.q(column) for column in wanted)
        sql = f"INSERT INTO {self.dialect.q(table)} ({cols_sql}) VALUES {', '.join(groups)};"
        return Statement(sql, params)

    def insert_values(self, table: str, column: str, values: Sequence[Any]) -> Statement:
        """Single-column multi-row INSERT (used to fill the staging table)."""

        names = ParamNames()
        params: NamedParams = {}
        groups: List[str] = []
        for index, value in enumerate(values):
            name = names.take(f"{column}_{index}")
            groups.append(f"({self.dialect.placeholder(name)})")
            params[name] = value
        sql = (
            f"INSERT INTO {self.dialect.q(table)} ({self.dialect.q(column)}) "
            f"VALUES {', '.join(groups)};"
        )
        return Statement(sql, params)

    def select_in(
        self, table: str, column: str, ids: Sequence[Any], *, order_by: Optional[str] = None
    ) -> Statement:
        """`SELECT T.*` where `column` is one of `ids`."""

        names = ParamNames()
        params: NamedParams = {}
        placeholders = []
        for value in ids:
            name = names.take(f"{column}_in")
            placeholders.append(self.dialect.placeholder(name))
            params[name] = value
        order = f" ORDER BY {qualified(self.dialect, order_by, 'T')}" if order_by else ""
        sql = (
            f"SELECT T.* FROM {self.dialect.q(table)} T "
            f"WHERE {qualified(self.dialect, column, 'T')} IN ({', '.join(placeholders)}){order};"
        )
        return Statement(sql, params)

    def select_join_staging(
        self,
        table: str,
        column: str,
        staging_table: str,
        staging_column: str,
        *,
        order_by: Optional[str] = None,
    ) -> Statement:
        order = f" ORDER BY {qualified(self.dialect, order_by, 'T')}" if order_by else ""
        sql = (
            f"SELECT T.* FROM {self.dialect.q(table)} T "
            f"INNER JOIN {self.dialect.q(staging_table)} S "
            f"ON {qualified(self.dialect, column, 'T')} = {qualified(self.dialect, staging_column, 'S')}"
            f"{order};"
        )
        return Statement(sql)

    def _settable(self, column: ColumnDescriptor) -> bool:
        spec = column.spec
        if not column.editable(self.allow_current_timestamp):
            return False
        if column.is_auto or spec.only_insert:
            return False
        if spec.auto_insert_date and not spec.auto_update_date:
            return False
        if spec.audit_role is AuditRole.INSERTED_BY:
            return False
        return True

    def _update_statement(
        self,
        table: str,
        settable: Sequence[ColumnDescriptor],
        where: Sequence[ColumnDescriptor],
    ) -> Statement:
        if not settable:
            raise ConfigurationError(f"nothing to update in {table!r}")
        names = ParamNames()
        assignments: List[str] = []
        params: NamedParams = {}
        for column in settable:
            name = names.take(column.column)
            assignments.append(f"{self.dialect.q(column.column)} = {self.dialect.placeholder(name)}")
            params[name] = bind(column, self.dialect, name).value
        predicate = render_predicate(where, self.dialect, names=names)
        params.update(predicate.params)
        sql = f"UPDATE {self.dialect.q(table)} SET {', '.join(assignments)}{predicate.sql};"
        return Statement(sql, params)
