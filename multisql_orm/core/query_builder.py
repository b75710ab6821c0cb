"""Key selection and WHERE predicate rendering.

`select_key` decides which columns identify a row; `render_predicate` turns
those columns (or explicit `Key` items) into a parameterized `WHERE` fragment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

from .binder import bind
from .columns import ColumnDescriptor, positive_int
from .conditions import Operator
from .contracts import DialectPort
from .types import NamedParams


class KeyStrategy(str, Enum):
    """How a row is identified."""

    IDENTITY = "identity"
    KEYS = "keys"
    ALL_COLUMNS = "all_columns"


@dataclass(frozen=True)
class KeySelection:
    """Columns chosen to identify a row plus the strategy that chose them."""

    strategy: KeyStrategy
    columns: Tuple[ColumnDescriptor, ...]

    def __bool__(self) -> bool:
        return bool(self.columns)


@dataclass(frozen=True)
class CompiledFragment:
    """Represents a compiled SQL fragment with its bound parameters."""

    sql: str
    params: NamedParams = field(default_factory=dict)


class ParamNames:
    """Generates safe, unique parameter names for one statement."""

    def __init__(self) -> None:
        self._used: Set[str] = set()

    def take(self, base: str) -> str:
        """Return `base` sanitized, suffixed with a counter when already used."""

        safe = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in base) or "p"
        if safe[0].isdigit():
            safe = f"p_{safe}"
        name = safe
        counter = 1
        while name in self._used:
            counter += 1
            name = f"{safe}_{counter}"
        self._used.add(name)
        return name


def select_key(columns: Sequence[ColumnDescriptor]) -> KeySelection:
    """Pick the identifying columns by strict precedence.

    1. The autoincrement column when its value is a positive integer.
    2. Every column flagged as key.
    3. Every non-ignored column.
    """

    for column in columns:
        if column.is_auto and not column.ignored and positive_int(column.value):
            return KeySelection(KeyStrategy.IDENTITY, (column,))

    keys = tuple(column for column in columns if column.is_key and not column.ignored)
    if keys:
        return KeySelection(KeyStrategy.KEYS, keys)

    return KeySelection(
        KeyStrategy.ALL_COLUMNS, tuple(column for column in columns if not column.ignored)
    )


def render_predicate(
    items: Iterable[Any],
    dialect: DialectPort,
    *,
    use_or: bool = False,
    table: Optional[str] = None,
    names: Optional[ParamNames] = None,
) -> CompiledFragment:
    """Compile key items into a SQL `WHERE` fragment.

    Items are column descriptors or `Key` objects. A `None` value renders
    `IS NULL` without a parameter. Items are joined with `AND`, or with `OR`
    when `use_or` is set.

    Args:
        items: Columns to compare.
        dialect: SQL dialect used for identifier quoting and placeholders.
        use_or: Combine clauses with `OR` instead of `AND`.
        table: Alias prefixed to every column (overrides a per-key alias).
        names: Shared parameter name generator for the whole statement.

    Returns:
        A compiled fragment starting with `" WHERE "`, or an empty fragment.
    """

    names = names or ParamNames()
    clauses: List[str] = []
    params: NamedParams = {}
    for item in items:
        clause, name, value = _compile_item(item, dialect, table, names)
        clauses.append(clause)
        if name is not None:
            params[name] = value

    if not clauses:
        return CompiledFragment("", {})
    joiner = " OR " if use_or else " AND "
    return CompiledFragment(f" WHERE {joiner.join(clauses)}", params)


def qualified(dialect: DialectPort, column: str, table: Optional[str]) -> str:
    col_sql = dialect.q(column)
    return f"{table}.{col_sql}" if table else col_sql


def _compile_item(
    item: Any,
    dialect: DialectPort,
    table: Optional[str],
    names: ParamNames,
) -> Tuple[str, Optional[str], Any]:
    col_sql = qualified(dialect, item.column, table or getattr(item, "table", None))
    if item.value is None:
        return f"{col_sql} IS NULL", None, None

    name = names.take(getattr(item, "param", None) or item.column)
    bound = bind(item, dialect, name)
    ph = dialect.placeholder(name)
    operator = Operator(getattr(item, "operator", None) or Operator.EQ)
    if operator.is_text_match:
        return f"{col_sql} LIKE {ph}{dialect.text_match_suffix}", name, bound.value
    return f"{col_sql} {operator.value} {ph}", name, bound.value
