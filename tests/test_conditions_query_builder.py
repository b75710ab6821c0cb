from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import Optional

from multisql_orm import K, Key, MySQLDialect, Operator, SQLiteDialect, introspect
from multisql_orm.core.query_builder import KeyStrategy, ParamNames, render_predicate, select_key


@dataclass
class Ticket:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    code: str = field(default="", metadata={"key": True})
    title: str = ""
    note: Optional[str] = field(default=None, metadata={"ignore": True})


@dataclass
class Keyless:
    name: str = ""
    size: int = 0
    scratch: Optional[str] = field(default=None, metadata={"ignore": True})


class OperatorTests(unittest.TestCase):
    def test_like_transforms(self) -> None:
        self.assertEqual(Operator.CONTAINS.transform("abc"), "%abc%")
        self.assertEqual(Operator.STARTS_WITH.transform("abc"), "abc%")
        self.assertEqual(Operator.ENDS_WITH.transform("abc"), "%abc")
        self.assertEqual(Operator.EQ.transform("abc"), "abc")
        self.assertIsNone(Operator.CONTAINS.transform(None))

    def test_key_factories(self) -> None:
        self.assertEqual(K.eq("a", 1), Key("a", 1, Operator.EQ))
        self.assertEqual(K.ge("a", 1).operator, Operator.GE)
        self.assertEqual(K.lt("a", 1).operator, Operator.LT)
        self.assertEqual(K.ends_with("a", "x").operator, Operator.ENDS_WITH)


class SelectKeyTests(unittest.TestCase):
    def test_positive_identity_wins(self) -> None:
        selection = select_key(introspect(Ticket(id=5, code="A")))
        self.assertEqual(selection.strategy, KeyStrategy.IDENTITY)
        self.assertEqual([c.column for c in selection.columns], ["id"])

    def test_identity_that_is_also_key_is_selected_alone(self) -> None:
        @dataclass
        class Both:
            id: Optional[int] = field(default=None, metadata={"auto": True, "key": True})
            code: str = field(default="", metadata={"key": True})

        selection = select_key(introspect(Both(id=5, code="A")))
        self.assertEqual([c.column for c in selection.columns], ["id"])

    def test_keys_when_identity_missing_or_zero(self) -> None:
        for value in (None, 0, -1):
            selection = select_key(introspect(Ticket(id=value, code="A")))
            self.assertEqual(selection.strategy, KeyStrategy.KEYS)
            self.assertEqual([c.column for c in selection.columns], ["code"])

    def test_all_non_ignored_columns_without_keys(self) -> None:
        selection = select_key(introspect(Keyless(name="n", size=2)))
        self.assertEqual(selection.strategy, KeyStrategy.ALL_COLUMNS)
        self.assertEqual([c.column for c in selection.columns], ["name", "size"])


class RenderPredicateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sqlite = SQLiteDialect()
        self.mysql = MySQLDialect()

    def test_text_match_sqlite_is_case_insensitive(self) -> None:
        fragment = render_predicate([K.contains("name", "abc")], self.sqlite)
        self.assertEqual(fragment.sql, ' WHERE "name" LIKE :name COLLATE NOCASE')
        self.assertEqual(fragment.params, {"name": "%abc%"})

    def test_text_match_mysql(self) -> None:
        fragment = render_predicate([K.starts_with("name", "abc")], self.mysql)
        self.assertEqual(fragment.sql, " WHERE `name` LIKE %(name)s")
        self.assertEqual(fragment.params, {"name": "abc%"})

    def test_none_value_renders_is_null_without_parameter(self) -> None:
        fragment = render_predicate([K.eq("deleted_at", None), K.eq("id", 3)], self.sqlite)
        self.assertEqual(fragment.sql, ' WHERE "deleted_at" IS NULL AND "id" = :id')
        self.assertEqual(fragment.params, {"id": 3})

    def test_or_joining(self) -> None:
        fragment = render_predicate([K.eq("a", 1), K.eq("b", 2)], self.sqlite, use_or=True)
        self.assertEqual(fragment.sql, ' WHERE "a" = :a OR "b" = :b')

    def test_repeated_column_gets_unique_parameter_names(self) -> None:
        fragment = render_predicate([K.ge("age", 18), K.lt("age", 65)], self.sqlite)
        self.assertEqual(fragment.sql, ' WHERE "age" >= :age AND "age" < :age_2')
        self.assertEqual(fragment.params, {"age": 18, "age_2": 65})

    def test_table_alias_and_explicit_param(self) -> None:
        fragment = render_predicate(
            [Key("created", "2024-01-01", Operator.GE, param="start")], self.sqlite, table="T"
        )
        self.assertEqual(fragment.sql, ' WHERE T."created" >= :start')
        self.assertEqual(fragment.params, {"start": "2024-01-01"})

    def test_values_are_adapted_for_the_dialect(self) -> None:
        fragment = render_predicate([K.eq("active", True)], self.sqlite)
        self.assertEqual(fragment.params, {"active": 1})

    def test_empty_items_render_nothing(self) -> None:
        fragment = render_predicate([], self.sqlite)
        self.assertEqual(fragment.sql, "")
        self.assertEqual(fragment.params, {})

    def test_column_descriptors_render_like_keys(self) -> None:
        selection = select_key(introspect(Ticket(id=9)))
        fragment = render_predicate(selection.columns, self.mysql)
        self.assertEqual(fragment.sql, " WHERE `id` = %(id)s")
        self.assertEqual(fragment.params, {"id": 9})


class ParamNamesTests(unittest.TestCase):
    def test_sanitizes_and_deduplicates(self) -> None:
        names = ParamNames()
        self.assertEqual(names.take("order-date"), "order_date")
        self.assertEqual(names.take("order-date"), "order_date_2")
        self.assertEqual(names.take("1col"), "p_1col")
        self.assertEqual(names.take(""), "p")


if __name__ == "__main__":
    unittest.main()
