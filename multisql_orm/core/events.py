"""Default event sink backed by the standard logging module."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .errors import ORMError


class LoggingEventSink:
    """Forward engine notifications to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("multisql_orm")

    def message(self, text: str) -> None:
        self.logger.info(text)

    def error(self, error: Union[BaseException, str]) -> None:
        if isinstance(error, ORMError):
            self.logger.error("%s", error, exc_info=error.__cause__ or error)
        elif isinstance(error, BaseException):
            self.logger.error("%s", error, exc_info=error)
        else:
            self.logger.error(error)

    def progress(self, count: int) -> None:
        self.logger.debug("progress: %d", count)

    def rows_affected(self, count: int) -> None:
        self.logger.debug("rows affected: %d", count)
