"""Error taxonomy raised or reported by the engine."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional


class ORMError(Exception):
    """Base error. Carries the rendered SQL and bound parameters when known."""

    def __init__(
        self,
        message: str,
        *,
        sql: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.sql = sql
        self.params = dict(params) if params else None

    def annotate(self, sql: Optional[str], params: Optional[Mapping[str, Any]]) -> "ORMError":
        """Attach statement context unless already present."""

        if self.sql is None:
            self.sql = sql
        if self.params is None and params:
            self.params = dict(params)
        return self

    @property
    def param_dump(self) -> str:
        return format_params(self.params)

    def __str__(self) -> str:
        text = super().__str__()
        if self.sql:
            text = f"{text} [sql: {self.sql}]"
        if self.params:
            text = f"{text} [params: {self.param_dump}]"
        return text


class ConnectionFailure(ORMError):
    """Could not open or keep a connection after bounded retries."""


class BusyOrLocked(ORMError):
    """Backend resource busy or locked after local retries were exhausted."""


class AmbiguousKeyMatch(ORMError):
    """More than one row matched a key expected to be unique."""


class ConstraintViolation(ORMError):
    """Row-level failure raised by the backend for one statement."""


class ConfigurationError(ORMError, ValueError):
    """Programmer error: missing table reference, key columns and the like."""


class InvalidFormat(ORMError, ValueError):
    """A value cannot be converted to the representation a column requires."""


def format_params(params: Optional[Mapping[str, Any]]) -> str:
    """Render parameters as `name=value|` pairs for diagnostics."""

    if not params:
        return ""
    return "".join(f"{name}={_dump_value(value)}|" for name, value in params.items())


def _dump_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


_CONSTRAINT_ERRORS = {"IntegrityError", "DataError"}


def classify_error(
    exc: BaseException,
    is_busy: Callable[[BaseException], bool],
    *,
    sql: Optional[str] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> ORMError:
    """Map a driver exception onto the taxonomy, annotated with its statement."""

    if isinstance(exc, ORMError):
        return exc.annotate(sql, params)
    message = f"{type(exc).__name__}: {exc}"
    if is_busy(exc):
        return BusyOrLocked(message, sql=sql, params=params)
    # DB-API drivers each define their own IntegrityError/DataError classes
    if any(cls.__name__ in _CONSTRAINT_ERRORS for cls in type(exc).mro()):
        return ConstraintViolation(message, sql=sql, params=params)
    return ORMError(message, sql=sql, params=params)
