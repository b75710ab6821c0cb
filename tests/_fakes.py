from __future__ import annotations

from typing import Any, Optional


class RecordingEvents:
    """Event sink that keeps every notification for assertions."""

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.errors: list[Any] = []
        self.progress_counts: list[int] = []
        self.rows: list[int] = []

    def message(self, text: str) -> None:
        self.messages.append(text)

    def error(self, error: Any) -> None:
        self.errors.append(error)

    def progress(self, count: int) -> None:
        self.progress_counts.append(count)

    def rows_affected(self, count: int) -> None:
        self.rows.append(count)

    def errors_of(self, cls: type) -> list[Any]:
        return [error for error in self.errors if isinstance(error, cls)]


class FakeMySQLCursor:
    def __init__(self, conn: "FakeMySQLConnection"):
        self._conn = conn
        self.description: Optional[list[tuple[str, ...]]] = None
        self.rowcount = -1
        self.lastrowid: Optional[int] = None
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, sql, params=None):  # noqa: ANN001,ANN201
        self._conn.executed.append((sql, params))
        if self._conn.fail_next:
            raise self._conn.fail_next.pop(0)
        upper = sql.lstrip().upper()
        if upper.startswith("SELECT VERSION()"):
            self.description = [("VERSION()",)]
            self._rows = [(self._conn.version,)]
        elif upper.startswith("SELECT 1"):
            self.description = [("1",)]
            self._rows = [(1,)]
        elif upper.startswith("SELECT") or upper.startswith("SHOW"):
            columns, rows = self._conn.select_result
            self.description = [(name,) for name in columns]
            self._rows = list(rows)
        else:
            self.description = None
            self._rows = []
            self.rowcount = self._conn.rowcount
            if upper.startswith("INSERT"):
                self._conn.next_id += 1
                self.lastrowid = self._conn.next_id
        return None

    def fetchone(self):  # noqa: ANN201
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):  # noqa: ANN201
        rows, self._rows = self._rows, []
        return rows

    def close(self) -> None:
        return None


class FakeMySQLConnection:
    """Minimal DB-API connection speaking just enough MySQL for SQL-shape tests."""

    def __init__(self, version: str = "8.0.36-log") -> None:
        self.version = version
        self.open = True
        self.autocommit_mode = False
        self.executed: list[tuple[str, Any]] = []
        self.fail_next: list[BaseException] = []
        self.select_result: tuple[list[str], list[tuple[Any, ...]]] = ([], [])
        self.rowcount = 1
        self.next_id = 0
        self.begin_calls = 0
        self.commit_calls = 0
        self.rollback_calls = 0

    def autocommit(self, flag: bool) -> None:
        self.autocommit_mode = flag

    def cursor(self) -> FakeMySQLCursor:
        return FakeMySQLCursor(self)

    def begin(self) -> None:
        self.begin_calls += 1

    def commit(self) -> None:
        self.commit_calls += 1

    def rollback(self) -> None:
        self.rollback_calls += 1

    def close(self) -> None:
        self.open = False

    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]


class MySQLLockError(Exception):
    """Mimics a driver error carrying MySQL error code 1205."""

    def __init__(self) -> None:
        super().__init__(1205, "Lock wait timeout exceeded; try restarting transaction")


class IntegrityError(Exception):
    """Stands in for a driver's `IntegrityError` class."""
