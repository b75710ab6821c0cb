"""Structural schema map computed once per model type.

`model_schema()` reads dataclass fields and their metadata a single time and
caches the resulting `ModelSchema`. Per-call column descriptors (with current
values) are built from this map by `columns.introspect`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import Field, dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple, Type

from .models import (
    AuditRole,
    DataclassModel,
    model_fields,
    model_type_hints,
    require_dataclass_model,
    table_name,
    unwrap_optional,
)

logger = logging.getLogger(__name__)


class SemanticType(str, Enum):
    """Storage-independent column type."""

    BOOL = "bool"
    INT = "int"
    DOUBLE = "double"
    MONEY = "money"
    ENUM = "enum"
    GUID = "guid"
    DATE = "date"
    TIME = "time"
    STRING = "string"
    BLOB = "blob"


_VALUE_TYPES = (bool, int, float, Decimal, uuid.UUID, datetime, date, time, timedelta)


@dataclass(frozen=True)
class FieldSpec:
    """Static description of one dataclass field."""

    attr: str
    column: str
    semantic_type: SemanticType
    python_type: Any
    nullable: bool
    is_key: bool = False
    is_auto: bool = False
    ignored: bool = False
    only_insert: bool = False
    only_update: bool = False
    auto_insert_date: bool = False
    auto_update_date: bool = False
    size: Optional[str] = None
    default: Any = None
    description: Optional[str] = None
    audit_role: Optional[AuditRole] = None
    init: bool = True

    @property
    def enum_type(self) -> Optional[Type[Enum]]:
        if isinstance(self.python_type, type) and issubclass(self.python_type, Enum):
            return self.python_type
        return None

    @property
    def is_identity(self) -> bool:
        """Autoincrement column assigned by the backend (not a GUID)."""

        return self.is_auto and self.semantic_type is not SemanticType.GUID


@dataclass(frozen=True)
class ModelSchema:
    """Cached per-type descriptor table plus capability flags."""

    model: Type[Any]
    table: str
    fields: Tuple[FieldSpec, ...]
    has_identity: bool
    has_audit_columns: bool
    declares_indexes: bool

    @property
    def identity(self) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.is_identity:
                return spec
        return None

    @property
    def key_fields(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.is_key)

    @property
    def persisted(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if not spec.ignored)

    @property
    def insert_date_field(self) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.auto_insert_date and not spec.ignored:
                return spec
        return None

    def by_column(self) -> Dict[str, FieldSpec]:
        return {spec.column: spec for spec in self.fields}


@lru_cache(maxsize=None)
def model_schema(cls: Type[DataclassModel]) -> ModelSchema:
    """Build (once) the structural schema map for a dataclass model.

    A field whose metadata cannot be interpreted is logged with its name and
    left out; the remaining fields still form a valid schema.
    """

    require_dataclass_model(cls)
    hints = model_type_hints(cls)
    specs = []
    for f in model_fields(cls):
        try:
            specs.append(_field_spec(f, hints.get(f.name, f.type)))
        except Exception as exc:
            logger.warning(
                "skipping field %s.%s during introspection: %s", cls.__name__, f.name, exc
            )

    fields = tuple(specs)
    return ModelSchema(
        model=cls,
        table=table_name(cls),
        fields=fields,
        has_identity=any(spec.is_identity for spec in fields),
        has_audit_columns=any(
            spec.auto_insert_date or spec.auto_update_date or spec.audit_role is not None
            for spec in fields
        ),
        declares_indexes=_declares_indexes(cls),
    )


def resolve_semantic_type(annotation: Any, override: Any = None) -> SemanticType:
    """Map a Python annotation (or explicit override) to a semantic type."""

    if override is not None:
        if isinstance(override, SemanticType):
            return override
        return SemanticType(str(override).lower())

    base, _ = unwrap_optional(annotation)
    if not isinstance(base, type):
        return SemanticType.STRING
    if issubclass(base, bool):
        return SemanticType.BOOL
    if issubclass(base, Enum):
        return SemanticType.ENUM
    if issubclass(base, int):
        return SemanticType.INT
    if issubclass(base, float):
        return SemanticType.DOUBLE
    if issubclass(base, Decimal):
        return SemanticType.MONEY
    if issubclass(base, uuid.UUID):
        return SemanticType.GUID
    if issubclass(base, (datetime, date)):
        return SemanticType.DATE
    if issubclass(base, (time, timedelta)):
        return SemanticType.TIME
    if issubclass(base, (bytes, bytearray, memoryview)):
        return SemanticType.BLOB
    return SemanticType.STRING


def resolve_nullable(annotation: Any, *, is_key: bool, ignored: bool) -> bool:
    """Nullability of a field from its annotation and flags.

    Checked in order: ignored reference/collection types; optional value
    types; text and byte arrays that are neither key nor ignored; enums that
    are not keys. Anything else is not nullable.
    """

    base, optional = unwrap_optional(annotation)
    value_type = _is_value_type(base)
    if ignored and not value_type:
        return True
    if optional and value_type:
        return True
    if _is_text_or_array(base) and not is_key and not ignored:
        return True
    if _is_enum(base) and not is_key:
        return True
    return False


def _field_spec(f: Field[Any], annotation: Any) -> FieldSpec:
    meta = f.metadata
    is_key = bool(meta.get("key") or meta.get("pk"))
    ignored = bool(meta.get("ignore"))
    base, _ = unwrap_optional(annotation)
    audit = meta.get("audit")
    return FieldSpec(
        attr=f.name,
        column=str(meta.get("column") or f.name),
        semantic_type=resolve_semantic_type(annotation, meta.get("type")),
        python_type=base,
        nullable=resolve_nullable(annotation, is_key=is_key, ignored=ignored),
        is_key=is_key,
        is_auto=bool(meta.get("auto")),
        ignored=ignored,
        only_insert=bool(meta.get("only_insert")),
        only_update=bool(meta.get("only_update")),
        auto_insert_date=bool(meta.get("auto_insert_date")),
        auto_update_date=bool(meta.get("auto_update_date")),
        size=_normalize_size(meta.get("size")),
        default=meta.get("default"),
        description=meta.get("description"),
        audit_role=AuditRole(audit) if audit is not None else None,
        init=f.init,
    )


def _normalize_size(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise TypeError("size must be an int, a (precision, scale) tuple or a string")
    if isinstance(raw, int):
        return f"({raw})"
    if isinstance(raw, tuple):
        return "(" + ", ".join(str(part) for part in raw) + ")"
    text = str(raw).strip()
    if text.upper() == "MAX":
        return "MAX"
    return text if text.startswith("(") else f"({text})"


def _declares_indexes(cls: Type[Any]) -> bool:
    if getattr(cls, "__indexes__", None):
        return True
    return any(
        f.metadata.get("index") or f.metadata.get("unique_index") for f in model_fields(cls)
    )


def _is_value_type(base: Any) -> bool:
    return isinstance(base, type) and issubclass(base, (*_VALUE_TYPES, Enum))


def _is_text_or_array(base: Any) -> bool:
    return isinstance(base, type) and issubclass(base, (str, bytes, bytearray))


def _is_enum(base: Any) -> bool:
    return isinstance(base, type) and issubclass(base, Enum)
