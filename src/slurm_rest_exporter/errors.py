"""Error types raised while turning raw SLURM records into metrics.

Aggregators route every per-record failure through an ``ErrorPolicy`` so
the choice between aborting a whole metric family and dropping the one bad
record is explicit at each call site.
"""

from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SlurmDataError(Exception):
    """Base class for malformed or incomplete SLURM API records."""


class MissingFieldError(SlurmDataError):
    """Raised when a required field is absent from a raw record."""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class UnknownStateError(SlurmDataError):
    """Raised when a state token matches none of the known state prefixes."""

    def __init__(self, kind: str, token: str):
        msg = f"failed to match {kind} state against known states: {token}"
        super().__init__(msg)
        self.kind = kind
        self.token = token


class ResourceParseError(SlurmDataError):
    """Raised when a matching TRES fragment cannot be parsed."""

    def __init__(self, message: str, fragment: str):
        super().__init__(message)
        self.fragment = fragment


class ErrorPolicy(str, Enum):
    """How an aggregator reacts to a record it cannot resolve."""

    FAIL_FAST = "fail_fast"
    SKIP = "skip"

    def handle(self, error: SlurmDataError, **context: Any) -> None:
        """Re-raise ``error`` or log it so the caller can drop the record.

        Args:
            error: The data error raised for the current record.
            **context: Extra key/value pairs for the log event.

        Raises:
            SlurmDataError: ``error`` itself, under ``FAIL_FAST``.
        """
        if self is ErrorPolicy.FAIL_FAST:
            raise error
        logger.error("Skipping record", error=str(error), **context)
