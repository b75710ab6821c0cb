from __future__ import annotations

import unittest
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from multisql_orm import (
    AuditColumns,
    ConfigurationError,
    Dialect,
    K,
    MySQLDialect,
    SQLiteDialect,
    StatementBuilder,
    introspect,
)


@dataclass
class Ticket:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    code: str = field(default="", metadata={"key": True})
    title: str = ""
    note: Optional[str] = field(default=None, metadata={"ignore": True})


@dataclass
class Invoice(AuditColumns):
    id: Optional[int] = field(default=None, metadata={"auto": True})
    number: str = field(default="", metadata={"key": True})
    total: Decimal = Decimal("0")
    created_by_app: str = field(default="", metadata={"only_insert": True})
    status_note: Optional[str] = field(default=None, metadata={"only_update": True})


@dataclass
class Counter:
    id: Optional[int] = field(default=None, metadata={"auto": True})


@dataclass
class Device:
    uid: Optional[uuid.UUID] = field(default=None, metadata={"auto": True})
    name: str = ""


@dataclass
class Hollow:
    scratch: Optional[str] = field(default=None, metadata={"ignore": True})


@dataclass
class Plain:
    name: str = ""
    size: int = 0


def _set_columns(sql: str) -> list[str]:
    assignments = sql.split(" SET ", 1)[1].split(" WHERE ", 1)[0]
    return [part.split(" = ", 1)[0].strip('"`') for part in assignments.split(", ")]


class SQLiteStatementTests(unittest.TestCase):
    def setUp(self) -> None:
        self.builder = StatementBuilder(SQLiteDialect())

    def test_insert_skips_identity_and_ignored(self) -> None:
        stmt = self.builder.insert("ticket", introspect(Ticket(code="A", title="t", note="x")))
        self.assertEqual(stmt.sql, 'INSERT INTO "ticket" ("code", "title") VALUES (:code, :title);')
        self.assertEqual(stmt.params, {"code": "A", "title": "t"})
        self.assertEqual(stmt.identity_sql, "SELECT last_insert_rowid();")

    def test_insert_without_columns_uses_default_values(self) -> None:
        stmt = self.builder.insert("counter", introspect(Counter()))
        self.assertEqual(stmt.sql, 'INSERT INTO "counter" DEFAULT VALUES;')

    def test_insert_writes_guid_autoincrement(self) -> None:
        uid = uuid.uuid4()
        stmt = self.builder.insert("device", introspect(Device(uid=uid, name="d")))
        self.assertEqual(stmt.params["uid"], uid.bytes_le)
        self.assertIsNone(stmt.identity_sql)

    def test_insert_excludes_only_update_columns(self) -> None:
        stmt = self.builder.insert("invoice", introspect(Invoice(number="N1")))
        self.assertIn('"created_by_app"', stmt.sql)
        self.assertIn('"inserted_at"', stmt.sql)
        self.assertNotIn('"status_note"', stmt.sql)
        self.assertNotIn('"id"', stmt.sql)

    def test_update_by_identity(self) -> None:
        stmt = self.builder.update("ticket", introspect(Ticket(id=7, code="A", title="t")))
        self.assertEqual(
            stmt.sql, 'UPDATE "ticket" SET "code" = :code, "title" = :title WHERE "id" = :id;'
        )
        self.assertEqual(stmt.params, {"code": "A", "title": "t", "id": 7})

    def test_update_by_key(self) -> None:
        stmt = self.builder.update("ticket", introspect(Ticket(code="A", title="t")))
        self.assertEqual(stmt.sql, 'UPDATE "ticket" SET "title" = :title WHERE "code" = :code;')

    def test_update_skips_insert_only_audit_columns(self) -> None:
        stmt = self.builder.update("invoice", introspect(Invoice(number="N1")))
        self.assertEqual(
            _set_columns(stmt.sql),
            ["updated_at", "updated_by", "origin", "total", "status_note"],
        )

    def test_update_with_native_timestamps_skips_dates(self) -> None:
        builder = StatementBuilder(SQLiteDialect(), allow_current_timestamp=True)
        stmt = builder.update("invoice", introspect(Invoice(number="N1")))
        self.assertNotIn("updated_at", _set_columns(stmt.sql))

    def test_update_without_identity_or_keys_fails(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.builder.update("plain", introspect(Plain(name="n")))

    def test_upsert_clause(self) -> None:
        stmt = self.builder.upsert("ticket", introspect(Ticket(code="A", title="t")))
        self.assertEqual(
            stmt.sql,
            'INSERT INTO "ticket" ("code", "title") VALUES (:code, :title) '
            'ON CONFLICT ("code") DO UPDATE SET "title" = excluded."title";',
        )

    def test_upsert_requires_keys(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.builder.upsert("plain", introspect(Plain(name="n")))

    def test_upsert_unsupported_by_generic_dialect(self) -> None:
        builder = StatementBuilder(Dialect())
        self.assertIsNone(builder.upsert("ticket", introspect(Ticket(code="A"))))

    def test_delete_by_selection(self) -> None:
        stmt = self.builder.delete("ticket", introspect(Ticket(id=3)))
        self.assertEqual(stmt.sql, 'DELETE FROM "ticket" WHERE "id" = :id;')

    def test_delete_without_reference_fails(self) -> None:
        with self.assertRaisesRegex(ConfigurationError, "cannot delete without a reference for WHERE"):
            self.builder.delete("hollow", introspect(Hollow()))
        with self.assertRaises(ConfigurationError):
            self.builder.delete_where("ticket", [])

    def test_select_with_keys_and_order(self) -> None:
        stmt = self.builder.select("ticket", [K.eq("code", "A")], order_by="id")
        self.assertEqual(stmt.sql, 'SELECT * FROM "ticket" WHERE "code" = :code ORDER BY "id";')
        stmt = self.builder.select_by_key("ticket", introspect(Ticket(id=4)))
        self.assertEqual(stmt.sql, 'SELECT * FROM "ticket" WHERE "id" = :id ORDER BY "id";')

    def test_select_requires_table(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.builder.select("")

    def test_multi_insert_suffixes_parameters_by_row(self) -> None:
        rows = [introspect(Ticket(code="A", title="a")), introspect(Ticket(code="B", title="b"))]
        stmt = self.builder.multi_insert("ticket", rows)
        self.assertEqual(
            stmt.sql,
            'INSERT INTO "ticket" ("code", "title") VALUES (:code_0, :title_0), (:code_1, :title_1);',
        )
        self.assertEqual(
            stmt.params, {"code_0": "A", "title_0": "a", "code_1": "B", "title_1": "b"}
        )

    def test_update_where(self) -> None:
        stmt = self.builder.update_where("ticket", [K.eq("title", "new")], [K.eq("title", "old")])
        self.assertEqual(stmt.sql, 'UPDATE "ticket" SET "title" = :set_title WHERE "title" = :title;')
        self.assertEqual(stmt.params, {"set_title": "new", "title": "old"})
        with self.assertRaises(ConfigurationError):
            self.builder.update_where("ticket", [K.eq("title", "new")], [])

    def test_select_in_and_staging_join(self) -> None:
        stmt = self.builder.select_in("ticket", "id", [1, 2, 3], order_by="id")
        self.assertEqual(
            stmt.sql,
            'SELECT T.* FROM "ticket" T WHERE T."id" IN (:id_in, :id_in_2, :id_in_3) ORDER BY T."id";',
        )
        self.assertEqual(stmt.params, {"id_in": 1, "id_in_2": 2, "id_in_3": 3})
        join = self.builder.select_join_staging("ticket", "id", "temp_in_use", "id", order_by="id")
        self.assertEqual(
            join.sql,
            'SELECT T.* FROM "ticket" T INNER JOIN "temp_in_use" S ON T."id" = S."id" ORDER BY T."id";',
        )


class MySQLStatementTests(unittest.TestCase):
    def setUp(self) -> None:
        self.builder = StatementBuilder(MySQLDialect(), allow_current_timestamp=True)

    def test_insert_uses_pyformat_and_backticks(self) -> None:
        stmt = self.builder.insert("ticket", introspect(Ticket(code="A", title="t")))
        self.assertEqual(
            stmt.sql, "INSERT INTO `ticket` (`code`, `title`) VALUES (%(code)s, %(title)s);"
        )
        self.assertEqual(stmt.identity_sql, "SELECT LAST_INSERT_ID();")

    def test_native_timestamps_are_left_to_the_server(self) -> None:
        stmt = self.builder.insert("invoice", introspect(Invoice(number="N1")))
        self.assertNotIn("`inserted_at`", stmt.sql)
        self.assertNotIn("`updated_at`", stmt.sql)
        self.assertIn("`origin`", stmt.sql)

    def test_upsert_clause(self) -> None:
        stmt = self.builder.upsert("ticket", introspect(Ticket(code="A", title="t")))
        self.assertEqual(
            stmt.sql,
            "INSERT INTO `ticket` (`code`, `title`) VALUES (%(code)s, %(title)s) "
            "ON DUPLICATE KEY UPDATE `title` = VALUES(`title`);",
        )

    def test_guid_binds_as_text(self) -> None:
        uid = uuid.uuid4()
        stmt = self.builder.insert("device", introspect(Device(uid=uid)))
        self.assertEqual(stmt.params["uid"], str(uid))

    def test_delete_where(self) -> None:
        stmt = self.builder.delete_where("ticket", [K.lt("id", 10)])
        self.assertEqual(stmt.sql, "DELETE FROM `ticket` WHERE `id` < %(id)s;")


if __name__ == "__main__":
    unittest.main()
