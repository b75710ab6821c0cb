"""Parameter binding: semantic type to driver value."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from .conditions import Operator
from .contracts import DialectPort
from .errors import InvalidFormat
from .metadata import SemanticType


class DbType(str, Enum):
    """Driver-level parameter type chosen for a semantic type."""

    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DECIMAL = "decimal"
    INT32 = "int32"
    GUID = "guid"
    TIME = "time"
    BINARY = "binary"
    STRING = "string"


@dataclass(frozen=True)
class BoundParameter:
    """One named parameter ready for a DB-API call."""

    name: str
    db_type: DbType
    value: Any


def db_type_for(semantic_type: Optional[SemanticType], dialect: DialectPort) -> DbType:
    """Map a semantic type to the parameter type of a dialect."""

    if semantic_type is None:
        return DbType.STRING
    if semantic_type is SemanticType.BOOL:
        return DbType.BOOLEAN
    if semantic_type is SemanticType.DATE:
        return DbType.DATETIME
    if semantic_type in (SemanticType.DOUBLE, SemanticType.MONEY):
        return DbType.DECIMAL
    if semantic_type in (SemanticType.ENUM, SemanticType.INT):
        return DbType.INT32
    if semantic_type is SemanticType.GUID:
        return DbType.GUID if dialect.native_guid else DbType.BINARY
    if semantic_type is SemanticType.TIME:
        return DbType.TIME
    if semantic_type is SemanticType.BLOB:
        return DbType.BINARY
    return DbType.STRING


def bind(item: Any, dialect: DialectPort, name: Optional[str] = None) -> BoundParameter:
    """Bind a column descriptor or `Key` into a `BoundParameter`.

    `item` must expose `column`, `value`, `operator` and `semantic_type`.
    Null values bind as `None`. A text-match operator replaces the raw value
    with its wildcard form.
    """

    semantic_type = _as_semantic_type(getattr(item, "semantic_type", None))
    db_type = db_type_for(semantic_type, dialect)
    param = name or getattr(item, "param", None) or item.column
    value = item.value
    if value is None:
        return BoundParameter(param, db_type, None)

    operator = getattr(item, "operator", Operator.EQ) or Operator.EQ
    if isinstance(value, Enum):
        value = value.value
    if semantic_type is SemanticType.GUID:
        value = normalize_guid(value, native=dialect.native_guid)
    if Operator(operator).is_text_match:
        value = Operator(operator).transform(value)
    return BoundParameter(param, db_type, dialect.adapt_value(value, db_type))


def bind_all(items: Iterable[Any], dialect: DialectPort) -> Dict[str, Any]:
    """Bind many items into a DB-API named-parameter dict."""

    params: Dict[str, Any] = {}
    for item in items:
        bound = bind(item, dialect)
        params[bound.name] = bound.value
    return params


def normalize_guid(value: Any, *, native: bool) -> Any:
    """Normalize a GUID value for storage.

    Without native GUID support the value becomes the 16 bytes of
    `UUID.bytes_le` (first three fields little-endian); otherwise a `uuid.UUID`.

    Raises:
        InvalidFormat: bytes input that is not exactly 16 bytes long, or text
            that is not a GUID.
    """

    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != 16:
            raise InvalidFormat(f"GUID binary value must be 16 bytes, got {len(raw)}")
        return raw if not native else uuid.UUID(bytes_le=raw)

    if isinstance(value, uuid.UUID):
        parsed = value
    else:
        try:
            parsed = uuid.UUID(str(value))
        except ValueError as exc:
            raise InvalidFormat(f"invalid GUID value {value!r}") from exc
    return parsed if native else parsed.bytes_le


def _as_semantic_type(raw: Any) -> Optional[SemanticType]:
    if raw is None or isinstance(raw, SemanticType):
        return raw
    return SemanticType(str(raw).lower())
