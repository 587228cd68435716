"""
models/result.py
----------------
Explicit success/failure container returned by every public service operation.
Callers inspect ``ok`` / ``error.kind`` instead of catching exceptions,
or call ``unwrap()`` when they prefer the exception style.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from errors import ErrorKind, GatewayError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        value: The payload on success (may legitimately be empty or 0).
        error: The structured error on failure, None on success.
    """
    value: Optional[T] = None
    error: Optional[GatewayError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GatewayError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind, or None on success."""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
