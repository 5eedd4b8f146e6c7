"""Error taxonomy and the result value returned by every public operation.

Internal code raises the typed exceptions below; public operations catch them
at their boundary and return an :class:`Outcome` so callers (the UI, the CLI)
only ever render ``message`` and never inspect exception types.

A potential duplicate is *not* an error: it is a row-level flag on an import
preview (see :mod:`hospitality_ledger.duplicates`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "VALIDATION_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    PARSE = "PARSE_ERROR"
    PERSISTENCE = "PERSISTENCE_ERROR"


class LedgerError(Exception):
    """Base class for domain errors; ``code`` is stable and machine-readable."""

    code: ErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Malformed input, rejected before any write."""

    code = ErrorKind.VALIDATION


class InvalidTransition(LedgerError):
    """State machine precondition failure."""

    code = ErrorKind.INVALID_TRANSITION

    def __init__(self, entity_id: str, current: str, attempted: str) -> None:
        self.entity_id = entity_id
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} booking {entity_id}: status is {current}")


class NotFound(LedgerError):
    """Entity missing or outside the caller's organisation."""

    code = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ParseError(LedgerError):
    """Unrecognised file header or encoding; the whole file is rejected."""

    code = ErrorKind.PARSE


class PersistenceError(LedgerError):
    """Datastore failure; the enclosing transaction has been rolled back."""

    code = ErrorKind.PERSISTENCE

    def __init__(self, message: str, *, transient: bool = False) -> None:
        self.transient = transient
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class Outcome[T]:
    """Success or failure of one core operation.

    ``value`` carries the operation's payload on success (an invoice number,
    an import preview, a saved count). ``error`` is set only on failure.
    """

    success: bool
    message: str
    value: T | None = None
    error: ErrorKind | None = None

    @classmethod
    def ok(cls, message: str, value: T | None = None) -> Outcome[T]:
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, err: LedgerError) -> Outcome[T]:
        return cls(success=False, message=err.message, error=err.code)


__all__ = [
    "ErrorKind",
    "InvalidTransition",
    "LedgerError",
    "NotFound",
    "Outcome",
    "ParseError",
    "PersistenceError",
    "ValidationError",
]
