"""Index SQL helpers used by schema generation.

Managed indexes follow a naming convention: `ix_<table>_<columns>` for plain
indexes and `ux_<table>_<columns>` for unique ones. Live indexes without one
of these prefixes are never created, altered or dropped by reconciliation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Type

from .contracts import DialectPort
from .errors import ConfigurationError
from .metadata import model_schema
from .models import DataclassModel, model_fields

logger = logging.getLogger(__name__)

INDEX_PREFIX = "ix_"
UNIQUE_INDEX_PREFIX = "ux_"
MANAGED_PREFIXES = (INDEX_PREFIX, UNIQUE_INDEX_PREFIX)


@dataclass(frozen=True)
class IndexSpec:
    """Represents one index definition."""

    columns: tuple[str, ...]
    unique: bool = False
    name: Optional[str] = None
    filter: Optional[str] = None


IndexInput = str | Sequence[str] | Mapping[str, Any] | IndexSpec


def collect_index_specs(cls: Type[DataclassModel]) -> list[IndexSpec]:
    """Collect index specs from field metadata and model `__indexes__`.

    Field flags refer to the field's mapped column; `__indexes__` entries
    name columns directly.
    """

    schema = model_schema(cls)
    by_attr = {spec.attr: spec for spec in schema.fields}
    specs: list[IndexSpec] = []

    for f in model_fields(cls):
        has_index = bool(f.metadata.get("index"))
        unique = bool(f.metadata.get("unique_index"))
        if not has_index and not unique:
            continue
        field_spec = by_attr.get(f.name)
        if field_spec is None or field_spec.ignored:
            continue
        specs.append(
            IndexSpec(
                columns=(field_spec.column,),
                unique=unique,
                name=f.metadata.get("index_name"),
            )
        )

    for raw in getattr(cls, "__indexes__", ()):
        specs.append(parse_index_input(raw))

    return dedupe_index_specs(specs)


def index_name(table: str, spec: IndexSpec) -> str:
    """Convention name of an index: custom names gain the `ix_`/`ux_` prefix."""

    prefix = UNIQUE_INDEX_PREFIX if spec.unique else INDEX_PREFIX
    if spec.name:
        name = spec.name
        return name if name.lower().startswith(prefix) else f"{prefix}{name}"
    raw_name = f"{prefix}{table}_{'_'.join(spec.columns)}"
    return "".join(char if char.isalnum() or char == "_" else "_" for char in raw_name)


def is_managed_index(name: str) -> bool:
    return name.lower().startswith(MANAGED_PREFIXES)


def build_index_sql(
    table: str,
    spec: IndexSpec,
    dialect: DialectPort,
    available_columns: set[str],
) -> str:
    """Build one `CREATE INDEX` SQL statement from one spec."""

    validate_index_columns(spec.columns, available_columns)

    name = index_name(table, spec)
    columns_sql = ", ".join(dialect.q(column) for column in spec.columns)
    prefix = "CREATE UNIQUE INDEX" if spec.unique else "CREATE INDEX"
    sql = f"{prefix} {dialect.q(name)} ON {dialect.q(table)} ({columns_sql})"

    if spec.filter:
        if getattr(dialect, "name", "").lower() == "sqlite":
            sql += f" WHERE {spec.filter}"
        else:
            logger.warning(
                "index %s: filter %r is not supported by %s and was dropped",
                name,
                spec.filter,
                getattr(dialect, "name", "this dialect"),
            )
    return sql + ";"


def drop_index_sql(dialect: DialectPort, table: str, name: str) -> str:
    if getattr(dialect, "name", "").lower() == "mysql":
        return f"DROP INDEX {dialect.q(name)} ON {dialect.q(table)};"
    return f"DROP INDEX {dialect.q(name)};"


def parse_index_input(raw: IndexInput) -> IndexSpec:
    """Accept an `IndexSpec`, a column name, a column list or a mapping."""

    if isinstance(raw, IndexSpec):
        _require_columns(raw.columns)
        return raw
    if isinstance(raw, Mapping):
        return IndexSpec(
            columns=normalize_columns(raw.get("columns")),
            unique=bool(raw.get("unique", False)),
            name=raw.get("name"),
            filter=raw.get("filter"),
        )
    if isinstance(raw, (str, Sequence)):
        return IndexSpec(columns=normalize_columns(raw))
    raise ConfigurationError(f"index definition of type {type(raw).__name__} is not supported")


def normalize_columns(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = (raw,)
    elif not isinstance(raw, Sequence):
        raise ConfigurationError("index columns must be a column name or a list of column names")
    columns = tuple(raw)
    _require_columns(columns)
    return columns


def _require_columns(columns: Sequence[Any]) -> None:
    if not columns:
        raise ConfigurationError("index needs at least one column")
    bad = [column for column in columns if not isinstance(column, str) or not column]
    if bad:
        raise ConfigurationError(f"invalid index column name(s): {bad!r}")


def dedupe_index_specs(specs: Sequence[IndexSpec]) -> list[IndexSpec]:
    # First declaration wins; the filter does not make two specs distinct.
    unique_specs: dict[tuple[tuple[str, ...], bool, Optional[str]], IndexSpec] = {}
    for spec in specs:
        unique_specs.setdefault((spec.columns, spec.unique, spec.name), spec)
    return list(unique_specs.values())


def validate_index_columns(columns: Sequence[str], available_columns: set[str]) -> None:
    missing = [column for column in columns if column not in available_columns]
    if missing:
        raise ConfigurationError(f"index column(s) not found in model: {', '.join(missing)}")
