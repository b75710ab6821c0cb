"""Basic CRUD example for the multisql_orm Repository on SQLite."""

from __future__ import annotations

import logging
import sqlite3
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

# Allow running this script directly from repository root.
PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "multisql_orm").exists()),
    None,
)
if PROJECT_ROOT and str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from multisql_orm import AuditColumns, ConnectionConfig, Database, K, Repository, SchemaReconciler


@dataclass
class Product(AuditColumns):
    # Identity assigned by the database; `sku` is the business key.
    id: Optional[int] = field(default=None, metadata={"auto": True})
    sku: str = field(default="", metadata={"key": True, "size": 20})
    name: str = ""
    price: Decimal = Decimal("0")


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    # 1) Connection, schema and repository.
    config = ConnectionConfig(dialect="sqlite", origin="example", user="demo", verbose=True)
    db = Database.connect(config, sqlite3.connect, ":memory:")
    try:
        print("DDL:", SchemaReconciler(db).ensure_table(Product))
        repo = Repository(db, Product)

        # 2) Insert; identity and audit fields come back on the object.
        lamp = repo.insert(Product(sku="LMP-1", name="Desk lamp", price=Decimal("24.90")))
        print("Inserted:", lamp)

        # 3) Upsert-by-select: same key, so this updates the existing row.
        repo.update_or_insert(Product(sku="LMP-1", name="Desk lamp", price=Decimal("19.90")))
        print("Fetched by key:", repo.get([K.eq("sku", "LMP-1")]))

        # 4) Batch insert and a LIKE query.
        repo.insert_many([Product(sku=f"CBL-{n}", name=f"Cable {n}m") for n in range(1, 4)])
        print("Cables:", repo.list([K.starts_with("name", "cable")]))

        # 5) Delete by key.
        print("Deleted:", repo.delete(Product(sku="CBL-1")))
        print("Remaining:", len(repo.list() or []))
    finally:
        db.close()


if __name__ == "__main__":
    main()
