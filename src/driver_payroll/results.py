"""Operation result type returned by ledger mutations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why an operation was rejected."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ILLEGAL_STATE = "illegal_state"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a ledger mutation.

    A failed result guarantees the ledger was not changed and no audit entry
    was written.
    """

    success: bool
    message: str
    value: T | None = None
    error: ErrorKind | None = None

    @classmethod
    def ok(cls, value: T | None = None, message: str = "") -> OperationResult[T]:
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> OperationResult[T]:
        return cls(success=False, message=message, error=error)

    def __bool__(self) -> bool:
        return self.success
