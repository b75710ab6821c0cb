"""Filter primitives: comparison operators and explicit key values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Operator(str, Enum):
    """Per-column comparison used when rendering a predicate."""

    EQ = "="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    STARTS_WITH = "starts_with"
    CONTAINS = "contains"
    ENDS_WITH = "ends_with"

    @property
    def is_text_match(self) -> bool:
        return self in (Operator.STARTS_WITH, Operator.CONTAINS, Operator.ENDS_WITH)

    def transform(self, value: Any) -> Any:
        """Apply the LIKE wildcard shape implied by a text-match operator."""

        if value is None or not self.is_text_match:
            return value
        if self is Operator.STARTS_WITH:
            return f"{value}%"
        if self is Operator.ENDS_WITH:
            return f"%{value}"
        return f"%{value}%"


@dataclass
class Key:
    """One explicit filter element.

    Attributes:
        column: Raw column name.
        value: Value to compare; `None` renders `IS NULL`.
        operator: Comparison operator.
        param: Explicit parameter name; defaults to the column name.
        table: Optional table alias prefix.
        semantic_type: Optional semantic type used when binding the value.
    """

    column: str
    value: Any = None
    operator: Operator = Operator.EQ
    param: Optional[str] = None
    table: Optional[str] = None
    semantic_type: Any = None


class K:
    """Fluent key factory methods."""

    @staticmethod
    def eq(column: str, value: Any) -> Key:
        """Build `column = value` key."""

        return Key(column, value)

    @staticmethod
    def gt(column: str, value: Any) -> Key:
        return Key(column, value, Operator.GT)

    @staticmethod
    def ge(column: str, value: Any) -> Key:
        return Key(column, value, Operator.GE)

    @staticmethod
    def lt(column: str, value: Any) -> Key:
        return Key(column, value, Operator.LT)

    @staticmethod
    def le(column: str, value: Any) -> Key:
        return Key(column, value, Operator.LE)

    @staticmethod
    def starts_with(column: str, value: str) -> Key:
        """Build `column LIKE 'value%'` key."""

        return Key(column, value, Operator.STARTS_WITH)

    @staticmethod
    def contains(column: str, value: str) -> Key:
        """Build `column LIKE '%value%'` key."""

        return Key(column, value, Operator.CONTAINS)

    @staticmethod
    def ends_with(column: str, value: str) -> Key:
        """Build `column LIKE '%value'` key."""

        return Key(column, value, Operator.ENDS_WITH)
