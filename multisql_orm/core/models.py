"""Model utilities for dataclass entities."""

from __future__ import annotations

import types
from dataclasses import MISSING, Field, dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)


class DataclassModel(Protocol):
    """Protocol for supported dataclass model types."""

    __dataclass_fields__: ClassVar[dict[str, Any]]


T = TypeVar("T", bound=DataclassModel)


class AuditRole(str, Enum):
    """Audit column roles stamped by the repository before binding."""

    INSERTED_BY = "inserted_by"
    UPDATED_BY = "updated_by"
    ORIGIN = "origin"


@dataclass
class AuditColumns:
    """Mixin declaring the standard audit columns.

    Models inheriting it get insertion/update timestamps, the acting user and
    the origin host stamped on every write.
    """

    inserted_at: Optional[datetime] = field(
        default=None, metadata={"auto_insert_date": True}
    )
    updated_at: Optional[datetime] = field(
        default=None, metadata={"auto_update_date": True}
    )
    inserted_by: Optional[str] = field(
        default=None, metadata={"audit": AuditRole.INSERTED_BY.value, "size": "(100)"}
    )
    updated_by: Optional[str] = field(
        default=None, metadata={"audit": AuditRole.UPDATED_BY.value, "size": "(100)"}
    )
    origin: Optional[str] = field(
        default=None, metadata={"audit": AuditRole.ORIGIN.value, "size": "(100)"}
    )


def require_dataclass_model(cls: Type[Any]) -> None:
    """Validate that a class is a dataclass model."""

    if not is_dataclass(cls):
        raise TypeError(f"{cls.__name__} must be a dataclass.")


def model_type(model_or_cls: Any) -> Type[Any]:
    return model_or_cls if isinstance(model_or_cls, type) else type(model_or_cls)


def table_name(model_or_cls: Any) -> str:
    """Resolve table name from model class or instance.

    Uses `__table__` override when present, otherwise lowercased class name.
    """

    cls = model_type(model_or_cls)
    name = getattr(cls, "__table__", None)
    return name if isinstance(name, str) and name else cls.__name__.lower()


def model_fields(cls: Type[DataclassModel]) -> List[Field[Any]]:
    """Return dataclass fields for a model type."""

    require_dataclass_model(cls)
    return list(fields(cls))


@lru_cache(maxsize=None)
def model_type_hints(cls: Type[Any]) -> Dict[str, Any]:
    require_dataclass_model(cls)
    try:
        return dict(get_type_hints(cls))
    except Exception:
        return {f.name: f.type for f in fields(cls)}


def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Return `(inner_type, was_optional)` for `Optional[X]` / `X | None`."""

    origin = get_origin(annotation)
    if origin not in {Union, types.UnionType}:
        return annotation, False

    all_args = get_args(annotation)
    args = [arg for arg in all_args if arg is not type(None)]
    if len(args) == 1 and len(all_args) == 2:
        return args[0], True
    return annotation, False


def field_default(f: Field[Any]) -> Any:
    """Return the declared dataclass default for a field, or `None`."""

    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:
        return f.default_factory()
    return None
