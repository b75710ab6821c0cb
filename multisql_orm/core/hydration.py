"""Map result rows back onto model instances."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Type

from .contracts import EventSink
from .errors import InvalidFormat
from .metadata import FieldSpec, ModelSchema, SemanticType, model_schema
from .types import RowMapping


def from_rows(
    cls: Type[Any],
    rows: Sequence[RowMapping],
    events: Optional[EventSink] = None,
) -> List[Any]:
    """Build one fresh `cls` instance per row.

    NULL columns leave the field at its default. A row that fails to convert
    is reported to `events` and skipped; the remaining rows are still mapped.
    """

    schema = model_schema(cls)
    result: List[Any] = []
    for index, row in enumerate(rows):
        try:
            result.append(row_to_model(schema, row))
        except Exception as exc:
            if events is None:
                raise
            events.error(InvalidFormat(f"row {index} of {schema.table}: {exc}"))
        if events is not None:
            events.progress(index + 1)
    if events is not None:
        events.rows_affected(len(result))
    return result


def row_to_model(schema: ModelSchema, row: RowMapping) -> Any:
    lowered = {str(key).lower(): value for key, value in row.items()}
    init_values: Dict[str, Any] = {}
    late_values: Dict[str, Any] = {}
    for spec in schema.fields:
        if spec.ignored:
            continue
        raw = lowered.get(spec.column.lower())
        if raw is None:
            continue
        value = convert_value(spec, raw)
        if spec.init:
            init_values[spec.attr] = value
        else:
            late_values[spec.attr] = value

    obj = schema.model(**init_values)
    for attr, value in late_values.items():
        setattr(obj, attr, value)
    return obj


def convert_value(spec: FieldSpec, raw: Any) -> Any:
    """Convert one database value to the Python type of a field."""

    kind = spec.semantic_type
    if kind is SemanticType.ENUM and spec.enum_type is not None:
        enum_type = spec.enum_type
        try:
            return enum_type(raw)
        except ValueError:
            return enum_type(int(raw))
    if kind is SemanticType.BOOL:
        return bool(int(raw)) if not isinstance(raw, bool) else raw
    if kind is SemanticType.INT:
        return int(raw)
    if kind is SemanticType.DOUBLE:
        return float(raw)
    if kind is SemanticType.MONEY:
        return raw if isinstance(raw, Decimal) else Decimal(str(raw))
    if kind is SemanticType.GUID:
        return _to_uuid(raw)
    if kind is SemanticType.DATE:
        return _to_date(raw, spec.python_type)
    if kind is SemanticType.TIME:
        return _to_time(raw, spec.python_type)
    if kind is SemanticType.BLOB:
        return bytes(raw)
    return raw if isinstance(raw, str) else str(raw)


def merge_saved_fields(target: Any, saved: Any) -> None:
    """Copy DB-assigned fields (identity, audit columns) from `saved` onto `target`."""

    schema = model_schema(type(target))
    for spec in schema.fields:
        if spec.ignored:
            continue
        if spec.is_auto or spec.auto_insert_date or spec.auto_update_date or spec.audit_role:
            setattr(target, spec.attr, getattr(saved, spec.attr))


def _to_uuid(raw: Any) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
        if len(data) == 16:
            return uuid.UUID(bytes_le=data)
        raw = data.decode("ascii")
    return uuid.UUID(str(raw))


def _to_date(raw: Any, target: Any) -> Any:
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        value = datetime(raw.year, raw.month, raw.day)
    else:
        value = datetime.fromisoformat(str(raw))
    if target is date:
        return value.date()
    return value


def _to_time(raw: Any, target: Any) -> Any:
    if isinstance(raw, timedelta):
        value = (datetime.min + raw).time()
    elif isinstance(raw, time):
        value = raw
    elif isinstance(raw, datetime):
        value = raw.time()
    else:
        text = str(raw)
        value = datetime.fromisoformat(text).time() if " " in text else time.fromisoformat(text)
    if target is timedelta:
        return timedelta(
            hours=value.hour, minutes=value.minute, seconds=value.second, microseconds=value.microsecond
        )
    return value
