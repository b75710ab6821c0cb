"""Per-call column descriptors carrying current field values."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, List, Optional, Sequence

from .conditions import Operator
from .metadata import FieldSpec, ModelSchema, SemanticType, model_schema
from .models import field_default, model_type

logger = logging.getLogger(__name__)


@dataclass
class ColumnDescriptor:
    """One persisted field plus its current value.

    Instances are created fresh by `introspect` for every statement build and
    mutated in place while defaults are applied before binding.
    """

    spec: FieldSpec
    value: Any = None
    operator: Operator = Operator.EQ
    param: Optional[str] = None
    table: Optional[str] = None

    @property
    def column(self) -> str:
        return self.spec.column

    @property
    def attr(self) -> str:
        return self.spec.attr

    @property
    def semantic_type(self) -> SemanticType:
        return self.spec.semantic_type

    @property
    def nullable(self) -> bool:
        return self.spec.nullable

    @property
    def is_key(self) -> bool:
        return self.spec.is_key

    @property
    def is_auto(self) -> bool:
        return self.spec.is_auto

    @property
    def is_identity(self) -> bool:
        return self.spec.is_identity

    @property
    def ignored(self) -> bool:
        return self.spec.ignored

    def editable(self, allow_current_timestamp: bool) -> bool:
        """Whether the column is written by INSERT/UPDATE statements."""

        if self.spec.ignored:
            return False
        if allow_current_timestamp and (
            self.spec.auto_insert_date or self.spec.auto_update_date
        ):
            return False
        return True


def introspect(model_or_obj: Any) -> List[ColumnDescriptor]:
    """Return ordered column descriptors for a model type or instance.

    For an instance the current attribute values are read; for a type the
    dataclass defaults are used. Enum values are reduced to their underlying
    value. A field whose value cannot be read is logged and left out.
    """

    schema = model_schema(model_type(model_or_obj))
    from_instance = not isinstance(model_or_obj, type)
    declared = {f.name: f for f in fields(schema.model)}
    result: List[ColumnDescriptor] = []
    for spec in schema.fields:
        try:
            if from_instance:
                raw = getattr(model_or_obj, spec.attr)
            else:
                raw = field_default(declared[spec.attr])
            result.append(ColumnDescriptor(spec, _plain_value(raw)))
        except Exception as exc:
            logger.warning(
                "skipping field %s.%s: %s", schema.model.__name__, spec.attr, exc
            )
    return result


def identity_column(columns: Sequence[ColumnDescriptor]) -> Optional[ColumnDescriptor]:
    for column in columns:
        if column.is_identity:
            return column
    return None


def key_columns(columns: Sequence[ColumnDescriptor]) -> List[ColumnDescriptor]:
    return [column for column in columns if column.is_key]


def positive_int(value: Any) -> Optional[int]:
    """Return `value` as an int when it is a positive integer, else `None`."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def prepare_for_write(columns: Sequence[ColumnDescriptor], obj: Any = None) -> None:
    """Fill generated values into descriptors right before binding.

    A GUID autoincrement column without a valid value receives a new UUID,
    written back onto `obj` when given. A non-nullable text column holding
    `None` is sent as an empty string.
    """

    for column in columns:
        if column.ignored:
            continue
        if column.is_auto and column.semantic_type is SemanticType.GUID:
            if not _valid_guid(column.value):
                column.value = uuid.uuid4()
                if obj is not None:
                    setattr(obj, column.attr, column.value)
            continue
        if (
            column.value is None
            and column.semantic_type is SemanticType.STRING
            and not column.nullable
        ):
            column.value = ""


def schema_of(model_or_obj: Any) -> ModelSchema:
    return model_schema(model_type(model_or_obj))


def _plain_value(raw: Any) -> Any:
    if isinstance(raw, Enum):
        return raw.value
    return raw


def _valid_guid(value: Any) -> bool:
    if isinstance(value, uuid.UUID):
        return value.int != 0
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 16 and any(value)
    if isinstance(value, str):
        try:
            return uuid.UUID(value).int != 0
        except ValueError:
            return False
    return False
