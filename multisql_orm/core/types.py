"""Type aliases shared by the engine and the DB-API adapters."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

# Every statement carries named parameters (`:p` on SQLite, `%(p)s` on MySQL).
NamedParams = Dict[str, Any]
QueryParams = Optional[NamedParams]

RowMapping = Mapping[str, Any]
Rows = List[RowMapping]
MaybeRow = Optional[RowMapping]

ServerVersion = Tuple[int, ...]
