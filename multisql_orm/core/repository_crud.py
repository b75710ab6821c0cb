"""Single-row write and read implementations used by `Repository`."""

from __future__ import annotations

from dataclasses import is_dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from .columns import ColumnDescriptor, identity_column, introspect, prepare_for_write
from .conditions import Key, Operator
from .errors import AmbiguousKeyMatch, BusyOrLocked, ConfigurationError, ORMError
from .hydration import from_rows, merge_saved_fields
from .metadata import SemanticType
from .query_builder import render_predicate
from .statements import Statement


def insert_row(repo: Any, obj: Any, columns: Sequence[ColumnDescriptor]) -> int:
    """Run one INSERT for `columns` and write the generated identity onto `obj`."""

    prepare_for_write(columns, obj)
    stmt = repo.statements.insert(repo.table, columns)
    cursor = repo.run(stmt)
    identity = identity_column(columns)
    if identity is not None and stmt.identity_sql:
        try:
            new_id = repo.db.last_insert_id(cursor, stmt.identity_sql)
        except Exception as exc:
            raise repo.wrap(exc, stmt) from exc
        if new_id is not None:
            identity.value = new_id
            setattr(obj, identity.attr, new_id)
    return _rowcount(cursor, default=1)


def update_row(repo: Any, obj: Any, columns: Sequence[ColumnDescriptor]) -> int:
    prepare_for_write(columns, obj)
    stmt = repo.statements.update(repo.table, columns)
    return _rowcount(repo.run(stmt))


def insert(repo: Any, obj: Any) -> Optional[Any]:
    columns = introspect(obj)
    repo.stamp(obj, columns, inserting=True)
    try:
        with repo.db.transaction():
            insert_row(repo, obj, columns)
    except Exception as exc:
        repo.report(exc)
        return None
    repo.verbose(f"{repo.table}: row inserted")
    return reload(repo, obj, columns)


def update(repo: Any, obj: Any) -> Optional[Any]:
    columns = introspect(obj)
    repo.stamp(obj, columns, inserting=False)
    try:
        with repo.db.transaction():
            affected = update_row(repo, obj, columns)
    except Exception as exc:
        repo.report(exc)
        return None
    repo.events.rows_affected(affected)
    if affected <= 0:
        repo.events.message(f"{repo.table}: nothing was updated")
        return None
    return reload(repo, obj, columns)


def update_or_insert(repo: Any, obj: Any) -> Optional[Any]:
    """Upsert-by-select with lock release between whole-operation retries."""

    for attempt in range(repo.RELEASE_ATTEMPTS + 1):
        try:
            return _update_or_insert_once(repo, obj)
        except BusyOrLocked as exc:
            if attempt >= repo.RELEASE_ATTEMPTS:
                repo.report(exc)
                return None
            repo.release_and_wait(attempt + 1)
    return None


def _update_or_insert_once(repo: Any, obj: Any) -> Optional[Any]:
    columns = introspect(obj)
    done = False
    try:
        with repo.db.transaction() as tx:
            select = repo.statements.select_by_key(repo.table, columns)
            existing = repo.fetch(select)
            if not existing:
                repo.stamp(obj, columns, inserting=True)
                done = insert_row(repo, obj, columns) > 0
            elif len(existing) == 1:
                repo.stamp(obj, columns, inserting=False)
                done = update_row(repo, obj, columns) > 0
            else:
                repo.report(
                    AmbiguousKeyMatch(
                        f"more than one item found to update in {repo.table} "
                        f"({len(existing)} rows)",
                        sql=select.sql,
                        params=select.params,
                    )
                )
            if not done:
                tx.mark_rollback()
    except BusyOrLocked:
        raise
    except Exception as exc:
        repo.report(exc)
        return None
    if not done:
        return None
    return reload(repo, obj, introspect(obj))


def upsert(repo: Any, obj: Any) -> Optional[Any]:
    columns = introspect(obj)
    repo.stamp(obj, columns, inserting=True)
    prepare_for_write(columns, obj)
    stmt = repo.statements.upsert(repo.table, columns)
    if stmt is None:
        repo.events.message(f"upsert is not supported by the {repo.d.name} dialect")
        return None
    try:
        with repo.db.transaction():
            repo.run(stmt)
    except Exception as exc:
        repo.report(exc)
        return None
    return reload(repo, obj, introspect(obj))


def delete(repo: Any, obj: Any) -> bool:
    columns = introspect(obj)
    stmt = repo.statements.delete(repo.table, columns)
    try:
        existing = repo.fetch(repo.statements.select_by_key(repo.table, columns))
        if not existing:
            repo.events.message(f"{repo.table}: item not found, nothing deleted")
            return False
        with repo.db.transaction():
            affected = _rowcount(repo.run(stmt))
    except Exception as exc:
        repo.report(exc)
        return False
    repo.events.rows_affected(affected)
    return affected > 0


def delete_where(repo: Any, keys: Optional[Sequence[Key]]) -> int:
    if keys is None:
        repo.events.error(f"{repo.table}: delete requires WHERE keys")
        return -1
    stmt = repo.statements.delete_where(repo.table, keys)
    try:
        with repo.db.transaction():
            affected = _rowcount(repo.run(stmt))
    except Exception as exc:
        repo.report(exc)
        return -1
    repo.events.rows_affected(affected)
    return affected


def update_where(repo: Any, values: Sequence[Key], where: Sequence[Key]) -> int:
    stmt = repo.statements.update_where(repo.table, values, where)
    try:
        with repo.db.transaction():
            affected = _rowcount(repo.run(stmt))
    except Exception as exc:
        repo.report(exc)
        return -1
    repo.events.rows_affected(affected)
    return affected


def execute(repo: Any, sql: str, keys: Optional[Sequence[Key]] = None) -> int:
    stmt = _with_predicate(repo, sql, keys)
    try:
        with repo.db.transaction():
            affected = _rowcount(repo.run(stmt))
    except Exception as exc:
        repo.report(exc)
        return -1
    repo.events.rows_affected(affected)
    return affected


def get(repo: Any, ref: Any) -> Optional[Any]:
    if is_dataclass(ref) and not isinstance(ref, type):
        stmt = repo.statements.select_by_key(repo.table, introspect(ref))
    else:
        stmt = repo.statements.select(
            repo.table, list(ref or ()), order_by=_identity_order(repo)
        )
    rows = _select(repo, stmt)
    return rows[0] if rows else None


def get_by_identity(repo: Any, value: Any) -> Optional[Any]:
    identity = _require_identity(repo)
    stmt = repo.statements.select(
        repo.table, [Key(identity.column, value, semantic_type=identity.semantic_type)]
    )
    rows = _select(repo, stmt)
    return rows[0] if rows else None


def list_rows(
    repo: Any,
    keys: Optional[Sequence[Key]],
    *,
    use_or: bool = False,
    where: Optional[Callable[[Any], bool]] = None,
) -> Optional[List[Any]]:
    """Rows matching `keys`, then kept only where the `where` callable is true."""

    stmt = repo.statements.select(
        repo.table, list(keys or ()), use_or=use_or, order_by=_identity_order(repo)
    )
    rows = _select(repo, stmt)
    if rows is None or where is None:
        return rows
    return [row for row in rows if where(row)]


def list_by_identity_range(repo: Any, start: int, end: int) -> Optional[List[Any]]:
    identity = _require_identity(repo)
    keys = [
        Key(identity.column, start, Operator.GE, param="start", semantic_type=identity.semantic_type),
        Key(identity.column, end, Operator.LE, param="end", semantic_type=identity.semantic_type),
    ]
    return _select(repo, repo.statements.select(repo.table, keys, order_by=identity.column))


def search(repo: Any, text: Optional[str]) -> Optional[List[Any]]:
    """Identity lookup for numeric text, else a CONTAINS match on the search column."""

    identity = _require_identity(repo)
    if not text or not text.strip():
        return list_rows(repo, None)
    text = text.strip()
    if text.isdigit():
        key = Key(identity.column, int(text), semantic_type=identity.semantic_type)
    else:
        key = Key(search_column(repo), text, Operator.CONTAINS)
    return list_rows(repo, [key])


def search_column(repo: Any) -> str:
    """`__search_column__` of the model, else its `description` column."""

    columns = repo.schema.by_column()
    column = getattr(repo.model, "__search_column__", None) or "description"
    if column not in columns or columns[column].ignored:
        raise ConfigurationError(f"{repo.model.__name__} has no text column to search")
    return column


def list_between(repo: Any, start: datetime, end: datetime) -> Optional[List[Any]]:
    field = repo.schema.insert_date_field
    if not repo.schema.has_audit_columns or field is None:
        raise ConfigurationError(
            f"{repo.model.__name__} has no insertion timestamp column"
        )
    if not repo.db.allow_current_timestamp:
        start, end = _as_utc(start), _as_utc(end)
    keys = [
        Key(field.column, start, Operator.GE, param="start", semantic_type=SemanticType.DATE),
        Key(field.column, end, Operator.LT, param="end", semantic_type=SemanticType.DATE),
    ]
    stmt = repo.statements.select(repo.table, keys, order_by=field.column)
    return _select(repo, stmt)


def query(
    repo: Any, sql: str, keys: Optional[Sequence[Key]] = None, *, use_or: bool = False
) -> Optional[List[Any]]:
    return _select(repo, _with_predicate(repo, sql, keys, use_or=use_or))


def reload(repo: Any, obj: Any, columns: Sequence[ColumnDescriptor]) -> Any:
    """Re-select the row of `obj` and merge DB-assigned fields into it."""

    try:
        rows = repo.fetch(repo.statements.select_by_key(repo.table, columns))
    except ORMError as exc:
        repo.report(exc)
        return obj
    saved = from_rows(repo.model, rows, repo.events)
    if saved:
        merge_saved_fields(obj, saved[-1])
    return obj


def _select(repo: Any, stmt: Statement) -> Optional[List[Any]]:
    try:
        rows = repo.fetch(stmt)
    except Exception as exc:
        repo.report(exc)
        return None
    return from_rows(repo.model, rows, repo.events)


def _with_predicate(
    repo: Any, sql: str, keys: Optional[Sequence[Key]], *, use_or: bool = False
) -> Statement:
    if not keys:
        return Statement(sql)
    predicate = render_predicate(keys, repo.d, use_or=use_or)
    return Statement(sql.rstrip().rstrip(";") + predicate.sql + ";", predicate.params)


def _identity_order(repo: Any) -> Optional[str]:
    identity = repo.schema.identity
    return identity.column if identity else None


def _require_identity(repo: Any) -> Any:
    identity = repo.schema.identity
    if identity is None:
        raise ConfigurationError(f"{repo.model.__name__} has no identity column")
    return identity


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _rowcount(cursor: Any, default: int = 0) -> int:
    count = getattr(cursor, "rowcount", None)
    if count is None or count < 0:
        return default
    return int(count)
