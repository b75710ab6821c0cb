from __future__ import annotations

import unittest
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from multisql_orm import AuditColumns, SemanticType, introspect, model_schema
from multisql_orm.core.columns import positive_int, prepare_for_write
from multisql_orm.core.metadata import resolve_nullable
from multisql_orm.core.models import table_name


class Color(Enum):
    RED = 1
    BLUE = 2


@dataclass
class Gadget:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    code: str = field(default="", metadata={"key": True, "size": 20})
    name: str = ""
    price: Optional[Decimal] = None
    weight: float = 0.0
    color: Color = Color.RED
    active: bool = True
    token: Optional[uuid.UUID] = None
    payload: Optional[bytes] = None
    cache: list = field(default_factory=list, metadata={"ignore": True})
    label: str = field(default="", metadata={"column": "display_label"})


@dataclass
class Note(AuditColumns):
    id: Optional[int] = field(default=None, metadata={"auto": True})
    text: str = ""


@dataclass
class Token:
    uid: Optional[uuid.UUID] = field(default=None, metadata={"auto": True, "key": True})
    label: str = ""


@dataclass
class Sized:
    amount: float = field(default=0.0, metadata={"size": (12, 2)})
    body: str = field(default="", metadata={"size": "max"})
    short: str = field(default="", metadata={"size": "40"})


@dataclass
class BrokenMetadata:
    id: Optional[int] = field(default=None, metadata={"auto": True})
    owner: str = field(default="", metadata={"audit": "somebody"})
    title: str = ""


@dataclass
class Renamed:
    __table__ = "legacy_items"

    id: Optional[int] = field(default=None, metadata={"auto": True})


class ModelSchemaTests(unittest.TestCase):
    def test_semantic_types_follow_annotations(self) -> None:
        kinds = {spec.attr: spec.semantic_type for spec in model_schema(Gadget).fields}
        self.assertEqual(kinds["id"], SemanticType.INT)
        self.assertEqual(kinds["code"], SemanticType.STRING)
        self.assertEqual(kinds["price"], SemanticType.MONEY)
        self.assertEqual(kinds["weight"], SemanticType.DOUBLE)
        self.assertEqual(kinds["color"], SemanticType.ENUM)
        self.assertEqual(kinds["active"], SemanticType.BOOL)
        self.assertEqual(kinds["token"], SemanticType.GUID)
        self.assertEqual(kinds["payload"], SemanticType.BLOB)

    def test_nullability_rules(self) -> None:
        nullable = {spec.attr: spec.nullable for spec in model_schema(Gadget).fields}
        self.assertTrue(nullable["id"])
        self.assertFalse(nullable["code"])
        self.assertTrue(nullable["name"])
        self.assertTrue(nullable["price"])
        self.assertFalse(nullable["weight"])
        self.assertTrue(nullable["color"])
        self.assertFalse(nullable["active"])
        self.assertTrue(nullable["token"])
        self.assertTrue(nullable["payload"])
        self.assertTrue(nullable["cache"])

    def test_enum_key_is_not_nullable(self) -> None:
        self.assertFalse(resolve_nullable(Color, is_key=True, ignored=False))
        self.assertFalse(resolve_nullable(str, is_key=True, ignored=False))
        self.assertTrue(resolve_nullable(Optional[int], is_key=True, ignored=False))

    def test_capability_flags(self) -> None:
        gadget = model_schema(Gadget)
        self.assertTrue(gadget.has_identity)
        self.assertFalse(gadget.has_audit_columns)
        self.assertFalse(gadget.declares_indexes)
        self.assertEqual(gadget.identity.attr, "id")

        note = model_schema(Note)
        self.assertTrue(note.has_audit_columns)
        self.assertEqual(note.insert_date_field.attr, "inserted_at")

        token = model_schema(Token)
        self.assertFalse(token.has_identity)
        self.assertIsNone(token.identity)

    def test_schema_is_cached_per_type(self) -> None:
        self.assertIs(model_schema(Gadget), model_schema(Gadget))

    def test_column_override_and_table_name(self) -> None:
        columns = [spec.column for spec in model_schema(Gadget).fields]
        self.assertIn("display_label", columns)
        self.assertNotIn("label", columns)
        self.assertEqual(table_name(Gadget), "gadget")
        self.assertEqual(table_name(Renamed()), "legacy_items")

    def test_size_normalization(self) -> None:
        sizes = {spec.attr: spec.size for spec in model_schema(Sized).fields}
        self.assertEqual(sizes, {"amount": "(12, 2)", "body": "MAX", "short": "(40)"})
        self.assertEqual(model_schema(Gadget).by_column()["code"].size, "(20)")

    def test_uninterpretable_field_is_skipped_with_warning(self) -> None:
        with self.assertLogs("multisql_orm.core.metadata", level="WARNING") as logs:
            schema = model_schema(BrokenMetadata)
        self.assertEqual([spec.attr for spec in schema.fields], ["id", "title"])
        self.assertIn("BrokenMetadata.owner", logs.output[0])


class IntrospectTests(unittest.TestCase):
    def test_order_is_declaration_order_and_stable(self) -> None:
        first = [column.column for column in introspect(Gadget)]
        second = [column.column for column in introspect(Gadget(code="x"))]
        self.assertEqual(first, second)
        self.assertEqual(first[:3], ["id", "code", "name"])
        self.assertEqual(first[-1], "display_label")

    def test_instance_values_and_enum_reduction(self) -> None:
        columns = {c.column: c for c in introspect(Gadget(id=3, code="A", color=Color.BLUE))}
        self.assertEqual(columns["id"].value, 3)
        self.assertEqual(columns["code"].value, "A")
        self.assertEqual(columns["color"].value, 2)

    def test_type_introspection_uses_defaults(self) -> None:
        columns = {c.column: c for c in introspect(Gadget)}
        self.assertIsNone(columns["id"].value)
        self.assertEqual(columns["cache"].value, [])
        self.assertEqual(columns["color"].value, 1)

    def test_audit_columns_editability(self) -> None:
        columns = {c.column: c for c in introspect(Note)}
        self.assertTrue(columns["inserted_at"].editable(False))
        self.assertFalse(columns["inserted_at"].editable(True))
        self.assertFalse(columns["updated_at"].editable(True))
        self.assertTrue(columns["origin"].editable(True))

    def test_prepare_for_write_assigns_guid_and_blank_text(self) -> None:
        token = Token(label="t")
        prepare_for_write(introspect(token), token)
        self.assertIsInstance(token.uid, uuid.UUID)

        gadget = Gadget(code=None)  # type: ignore[arg-type]
        columns = {c.column: c for c in introspect(gadget)}
        prepare_for_write(list(columns.values()), gadget)
        self.assertEqual(columns["code"].value, "")

        existing = uuid.uuid4()
        kept = Token(uid=existing)
        prepare_for_write(introspect(kept), kept)
        self.assertEqual(kept.uid, existing)

    def test_positive_int(self) -> None:
        self.assertEqual(positive_int(5), 5)
        self.assertEqual(positive_int("7"), 7)
        self.assertIsNone(positive_int(0))
        self.assertIsNone(positive_int(None))
        self.assertIsNone(positive_int(True))
        self.assertIsNone(positive_int("abc"))


if __name__ == "__main__":
    unittest.main()
