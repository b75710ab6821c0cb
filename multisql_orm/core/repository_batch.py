"""Chunked bulk operations and key-set lookups used by `Repository`.

Lists above `Repository.LARGE_BATCH` items are split into chunks of
`Repository.CHUNK_SIZE`. Each chunk runs in its own transaction and commits
only when every row in it succeeded; earlier chunks stay committed.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

from .columns import identity_column, introspect, positive_int, prepare_for_write
from .errors import ConfigurationError, ORMError
from .hydration import from_rows
from .repository_crud import insert_row, reload, update_row, _rowcount
from .statements import Statement

RowAction = Callable[[Any], bool]


def insert_many(repo: Any, objs: Sequence[Any]) -> List[Any]:
    def action(obj: Any) -> bool:
        columns = introspect(obj)
        repo.stamp(obj, columns, inserting=True)
        return insert_row(repo, obj, columns) > 0

    return _run_chunks(repo, objs, action, restore_identity=True)


def update_many(repo: Any, objs: Sequence[Any]) -> List[Any]:
    def action(obj: Any) -> bool:
        columns = introspect(obj)
        repo.stamp(obj, columns, inserting=False)
        return update_row(repo, obj, columns) > 0

    return _run_chunks(repo, objs, action)


def delete_many(repo: Any, objs: Sequence[Any]) -> int:
    def action(obj: Any) -> bool:
        stmt = repo.statements.delete(repo.table, introspect(obj))
        return _rowcount(repo.run(stmt)) > 0

    return len(_run_chunks(repo, objs, action))


def bulk_insert(repo: Any, objs: Sequence[Any]) -> int:
    """Insert each chunk with one multi-row statement."""

    total = 0
    for chunk in repo.chunks(objs):
        rows = []
        for obj in chunk:
            columns = introspect(obj)
            repo.stamp(obj, columns, inserting=True)
            prepare_for_write(columns, obj)
            rows.append(columns)
        stmt = repo.statements.multi_insert(repo.table, rows)
        try:
            with repo.db.transaction() as tx:
                affected = _rowcount(repo.run(stmt), default=len(chunk))
                if affected != len(chunk):
                    tx.mark_rollback()
                    repo.events.message(
                        f"{repo.table}: chunk rolled back, {affected} of {len(chunk)} rows inserted"
                    )
                    continue
        except Exception as exc:
            repo.report(exc)
            continue
        total += affected
        repo.events.progress(total)
    repo.events.rows_affected(total)
    return total


def upsert_many(repo: Any, objs: Sequence[Any]) -> List[Any]:
    """Write each item by its own strategy; failed items are reported and skipped.

    An item carrying a positive identity is updated by identity. Otherwise it
    goes through the dialect upsert clause when the model has key columns, or
    a plain insert when it has none.
    """

    if not objs:
        return []
    if not repo.schema.has_identity and not repo.schema.key_fields:
        raise ConfigurationError(
            f"{repo.model.__name__} needs an identity or key columns to upsert"
        )

    done: List[Any] = []
    for index, obj in enumerate(objs):
        try:
            written = _upsert_one(repo, obj)
        except Exception as exc:
            repo.report(exc)
            continue
        if written is None:
            repo.events.message(f"upsert is not supported by the {repo.d.name} dialect")
            break
        if written:
            done.append(obj)
        repo.events.progress(index + 1)
    repo.events.rows_affected(len(done))
    return done


def _upsert_one(repo: Any, obj: Any) -> Optional[bool]:
    columns = introspect(obj)
    identity = identity_column(columns)
    by_identity = identity is not None and positive_int(identity.value) is not None
    repo.stamp(obj, columns, inserting=not by_identity)
    prepare_for_write(columns, obj)
    if by_identity:
        stmt = repo.statements.update_by_identity(repo.table, columns)
    elif repo.schema.key_fields:
        stmt = repo.statements.upsert(repo.table, columns)
        if stmt is None:
            return None
    else:
        with repo.db.transaction():
            return insert_row(repo, obj, columns) > 0
    with repo.db.transaction():
        affected = _rowcount(repo.run(stmt), default=1)
    if by_identity and affected == 0:
        repo.events.message(f"{repo.table}: no row with identity {identity.value}")
        return False
    if not by_identity and repo.schema.has_identity:
        reload(repo, obj, introspect(obj))
    return True


def list_by_ids(repo: Any, ids: Sequence[Any], column: Optional[str] = None) -> Optional[List[Any]]:
    """Rows whose `column` matches one of `ids`.

    Up to `IN_LIST_LIMIT` ids use an `IN (...)` list; more ids are written to
    a temporary staging table in chunks and inner-joined.
    """

    if column is None:
        identity = repo.schema.identity
        if identity is None:
            repo.events.message(f"{repo.model.__name__} has no identity column to look up")
            return None
        column = identity.column
    if column not in repo.schema.by_column():
        repo.events.message(f"{repo.table} has no column {column!r}")
        return None
    if not ids:
        return []

    values = list(dict.fromkeys(ids))
    order_by = repo.schema.identity.column if repo.schema.identity else None
    try:
        if len(values) <= repo.IN_LIST_LIMIT:
            rows = repo.fetch(repo.statements.select_in(repo.table, column, values, order_by=order_by))
        else:
            rows = _fetch_via_staging(repo, column, values, order_by)
    except Exception as exc:
        repo.report(exc)
        return None
    return from_rows(repo.model, rows, repo.events)


def _fetch_via_staging(
    repo: Any, column: str, values: List[Any], order_by: Optional[str]
) -> List[Any]:
    staging = repo.STAGING_TABLE
    staging_column = repo.STAGING_COLUMN
    q = repo.d.q
    if repo.d.name == "mysql":
        create = (
            f"CREATE TEMPORARY TABLE IF NOT EXISTS {q(staging)} "
            f"({q(staging_column)} BIGINT NOT NULL);"
        )
    else:
        create = (
            f"CREATE TEMP TABLE IF NOT EXISTS {q(staging)} "
            f"({q(staging_column)} INTEGER NOT NULL);"
        )
    clear = Statement(f"DELETE FROM {q(staging)};")
    with repo.db.transaction():
        repo.run(Statement(create))
        repo.run(clear)
        for start in range(0, len(values), repo.IN_LIST_LIMIT):
            chunk = values[start : start + repo.IN_LIST_LIMIT]
            repo.run(repo.statements.insert_values(staging, staging_column, chunk))
        rows = repo.fetch(
            repo.statements.select_join_staging(
                repo.table, column, staging, staging_column, order_by=order_by
            )
        )
        repo.run(clear)
    return rows


def _run_chunks(
    repo: Any,
    objs: Sequence[Any],
    action: RowAction,
    *,
    restore_identity: bool = False,
) -> List[Any]:
    done: List[Any] = []
    processed = 0
    for chunk in repo.chunks(objs):
        committed, processed = _run_chunk(repo, chunk, action, processed, restore_identity)
        done.extend(committed)
    repo.events.rows_affected(len(done))
    return done


def _run_chunk(
    repo: Any,
    chunk: Sequence[Any],
    action: RowAction,
    processed: int,
    restore_identity: bool,
) -> tuple[List[Any], int]:
    identity = repo.schema.identity if restore_identity else None
    previous = [getattr(obj, identity.attr) for obj in chunk] if identity else []
    succeeded: List[Any] = []
    try:
        with repo.db.transaction() as tx:
            for obj in chunk:
                try:
                    if action(obj):
                        succeeded.append(obj)
                except ConfigurationError:
                    raise
                except ORMError as exc:
                    repo.report(exc)
                processed += 1
                repo.events.progress(processed)
            if len(succeeded) != len(chunk):
                tx.mark_rollback()
    except ConfigurationError:
        raise
    except Exception as exc:
        repo.report(exc)
        succeeded = []

    if len(succeeded) == len(chunk):
        return succeeded, processed

    repo.events.message(
        f"{repo.table}: chunk of {len(chunk)} rolled back, "
        f"{len(chunk) - len(succeeded)} row(s) failed"
    )
    if identity is not None:
        for obj, value in zip(chunk, previous):
            setattr(obj, identity.attr, value)
    return [], processed
