"""
Result and error types shared by every engine operation.

Expected failures (unknown ids, wrong status, duplicate registration, ...) are
returned as data inside a Result.  Only broken invariants raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

ErrorKind = Literal[
    "not_found",
    "invalid_state",
    "already_registered",
    "payment_required",
    "insufficient_players",
    "unauthorized",
    "invalid_config",
]


@dataclass(frozen=True)
class EngineError:
    kind: ErrorKind
    reason: str


class ResultError(Exception):
    """Raised by Result.unwrap() on a failed result."""

    def __init__(self, error: EngineError) -> None:
        super().__init__(f"{error.kind}: {error.reason}")
        self.error = error


class BracketIntegrityError(RuntimeError):
    """A match graph invariant was violated.  Always a programming error."""


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, reason: str) -> Result[T]:
        return cls(error=EngineError(kind=kind, reason=reason))

    def unwrap(self) -> T:
        if self.error is not None:
            raise ResultError(self.error)
        return self.value  # type: ignore[return-value]
