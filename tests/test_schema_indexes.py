from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import Optional

from multisql_orm import ConfigurationError, IndexSpec, MySQLDialect, SQLiteDialect
from multisql_orm.core.schema_indexes import (
    build_index_sql,
    collect_index_specs,
    dedupe_index_specs,
    drop_index_sql,
    index_name,
    is_managed_index,
    parse_index_input,
)


@dataclass
class Article:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    slug: str = field(default="", metadata={"key": True, "unique_index": True})
    author: Optional[str] = field(default=None, metadata={"index": True})
    title: Optional[str] = None

    __indexes__ = [{"columns": ("author", "title"), "name": "author_title"}]


@dataclass
class Subscriber:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    email: str = field(
        default="", metadata={"column": "email_address", "index": True, "index_name": "email_lookup"}
    )
    skipped: Optional[str] = field(default=None, metadata={"ignore": True, "index": True})

    __indexes__ = ["email_address", ("email_address",)]


class CollectIndexSpecsTests(unittest.TestCase):
    def test_field_flags_and_declared_indexes(self) -> None:
        self.assertEqual(
            collect_index_specs(Article),
            [
                IndexSpec(("slug",), unique=True),
                IndexSpec(("author",)),
                IndexSpec(("author", "title"), name="author_title"),
            ],
        )

    def test_mapped_column_names_and_dedupe(self) -> None:
        specs = collect_index_specs(Subscriber)
        self.assertEqual(
            specs,
            [IndexSpec(("email_address",), name="email_lookup"), IndexSpec(("email_address",))],
        )


class IndexNamingTests(unittest.TestCase):
    def test_convention_names(self) -> None:
        self.assertEqual(index_name("t", IndexSpec(("a", "b"))), "ix_t_a_b")
        self.assertEqual(index_name("t", IndexSpec(("a",), unique=True)), "ux_t_a")
        self.assertEqual(index_name("my-table", IndexSpec(("a",))), "ix_my_table_a")

    def test_custom_names_gain_prefix(self) -> None:
        self.assertEqual(index_name("t", IndexSpec(("a",), name="lookup")), "ix_lookup")
        self.assertEqual(index_name("t", IndexSpec(("a",), name="ix_lookup")), "ix_lookup")
        self.assertEqual(index_name("t", IndexSpec(("a",), unique=True, name="once")), "ux_once")

    def test_managed_prefixes(self) -> None:
        self.assertTrue(is_managed_index("ix_t_a"))
        self.assertTrue(is_managed_index("UX_T_A"))
        self.assertFalse(is_managed_index("legacy_title"))
        self.assertFalse(is_managed_index("sqlite_autoindex_t_1"))


class IndexSqlTests(unittest.TestCase):
    def test_sqlite_partial_index(self) -> None:
        sql = build_index_sql("t", IndexSpec(("a",), filter="a > 0"), SQLiteDialect(), {"a"})
        self.assertEqual(sql, 'CREATE INDEX "ix_t_a" ON "t" ("a") WHERE a > 0;')

    def test_mysql_drops_filter_with_warning(self) -> None:
        with self.assertLogs("multisql_orm.core.schema_indexes", level="WARNING") as logs:
            sql = build_index_sql(
                "t", IndexSpec(("a", "b"), unique=True, filter="a > 0"), MySQLDialect(), {"a", "b"}
            )
        self.assertEqual(sql, "CREATE UNIQUE INDEX `ux_t_a_b` ON `t` (`a`, `b`);")
        self.assertIn("ux_t_a_b", logs.output[0])

    def test_unknown_column_fails(self) -> None:
        with self.assertRaisesRegex(ConfigurationError, "missing"):
            build_index_sql("t", IndexSpec(("missing",)), SQLiteDialect(), {"a"})

    def test_drop_statements(self) -> None:
        self.assertEqual(drop_index_sql(SQLiteDialect(), "t", "ix_t_a"), 'DROP INDEX "ix_t_a";')
        self.assertEqual(drop_index_sql(MySQLDialect(), "t", "ix_t_a"), "DROP INDEX `ix_t_a` ON `t`;")


class ParseIndexInputTests(unittest.TestCase):
    def test_accepted_shapes(self) -> None:
        self.assertEqual(parse_index_input("a"), IndexSpec(("a",)))
        self.assertEqual(parse_index_input(["a", "b"]), IndexSpec(("a", "b")))
        self.assertEqual(
            parse_index_input({"columns": "a", "unique": True, "name": "n", "filter": "a > 0"}),
            IndexSpec(("a",), unique=True, name="n", filter="a > 0"),
        )
        spec = IndexSpec(("a",))
        self.assertIs(parse_index_input(spec), spec)

    def test_rejected_shapes(self) -> None:
        for raw in (123, {"columns": ()}, {"columns": ("a", "")}, IndexSpec(())):
            with self.subTest(raw=raw):
                with self.assertRaises(ConfigurationError):
                    parse_index_input(raw)

    def test_dedupe_keeps_first(self) -> None:
        specs = [IndexSpec(("a",)), IndexSpec(("a",)), IndexSpec(("a",), unique=True)]
        self.assertEqual(dedupe_index_specs(specs), [IndexSpec(("a",)), IndexSpec(("a",), unique=True)])


if __name__ == "__main__":
    unittest.main()
