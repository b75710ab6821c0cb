"""Immutable connection and behavior settings owned by the caller."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

_DEFAULT_QUOTES = {"sqlite": ('"', '"'), "mysql": ("`", "`")}


@dataclass(frozen=True)
class ConnectionConfig:
    """Settings read by the engine; never mutated after construction.

    Attributes:
        dialect: Dialect tag (`"sqlite"` or `"mysql"`).
        open_quote: Identifier opening quote; dialect default when `None`.
        close_quote: Identifier closing quote; dialect default when `None`.
        try_reconnect: Connection retries; `0` means 3.
        seconds_wait_to_try: Fixed delay between connection attempts; `0` means 1.
        verbose: Emit diagnostic messages to the event sink.
        allow_current_timestamp: Force native timestamp handling on or off;
            `None` derives it from the dialect and server version.
        origin: Value stamped into origin audit columns; host name when `None`.
        user: Value stamped into inserted_by/updated_by audit columns.
        lock_retries: Statement retries on busy/locked errors.
        lock_retry_delay: Base delay in seconds for statement retries.
    """

    dialect: str = "sqlite"
    open_quote: Optional[str] = None
    close_quote: Optional[str] = None
    try_reconnect: int = 3
    seconds_wait_to_try: float = 1.0
    verbose: bool = False
    allow_current_timestamp: Optional[bool] = None
    origin: Optional[str] = None
    user: Optional[str] = None
    lock_retries: int = 3
    lock_retry_delay: float = 0.5

    def __post_init__(self) -> None:
        tag = (self.dialect or "").lower()
        if tag not in _DEFAULT_QUOTES:
            raise ConfigurationError(f"Unsupported dialect: {self.dialect!r}")
        object.__setattr__(self, "dialect", tag)
        default_open, default_close = _DEFAULT_QUOTES[tag]
        if self.open_quote is None:
            object.__setattr__(self, "open_quote", default_open)
        if self.close_quote is None:
            object.__setattr__(self, "close_quote", default_close)
        if self.try_reconnect < 0 or self.lock_retries < 0:
            raise ConfigurationError("retry counts must not be negative")

    @property
    def reconnect_attempts(self) -> int:
        return self.try_reconnect or 3

    @property
    def reconnect_delay(self) -> float:
        return self.seconds_wait_to_try or 1.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ConnectionConfig":
        """Build from a plain mapping, ignoring unknown keys."""

        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in raw.items() if key in known})
