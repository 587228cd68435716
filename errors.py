"""
errors.py
---------
Structured error taxonomy for the gateway.

Every failure the services report belongs to one of three kinds:

    INVALID_ARGUMENT  bad caller input (blank names, empty payloads,
                      malformed parameter names). Client fault.
    UNAUTHORIZED      forbidden table or SQL rejected by the safety
                      validator. Client fault, distinct from bad input.
    OPERATIONAL       anything raised by the storage layer or the hashing
                      library. Server fault; backend details stay in
                      ``__cause__`` and are never exposed to callers.

"Nothing found" is not an error: it is reported as data (0 rows affected,
an empty result set, or a NOT_FOUND credential outcome).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNAUTHORIZED = "unauthorized"
    OPERATIONAL = "operational"


class GatewayError(Exception):
    """Base structured error for the gateway."""

    kind: ErrorKind = ErrorKind.OPERATIONAL
    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def is_client_fault(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def public_message(self) -> str:
        """Message safe to hand back to an API caller."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status_code": self.status_code,
            "message": self.public_message,
            "details": self.details,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, message={self.message!r})"


class InvalidArgumentError(GatewayError):
    kind = ErrorKind.INVALID_ARGUMENT
    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None, details: Optional[dict[str, Any]] = None) -> None:
        d = details or {}
        if field is not None:
            d["field"] = field
        super().__init__(message, details=d)
        self.field = field


class UnauthorizedError(GatewayError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 403

    def __init__(self, message: str, *, table: Optional[str] = None, details: Optional[dict[str, Any]] = None) -> None:
        d = details or {}
        if table is not None:
            d["table"] = table
        super().__init__(message, details=d)
        self.table = table


class OperationalError(GatewayError):
    kind = ErrorKind.OPERATIONAL
    status_code = 500

    def __init__(self, message: str, *, operation: str, details: Optional[dict[str, Any]] = None) -> None:
        d = details or {}
        d["operation"] = operation
        super().__init__(message, details=d)
        self.operation = operation

    @property
    def public_message(self) -> str:
        return "internal error while processing the request"


__all__ = [
    "ErrorKind",
    "GatewayError",
    "InvalidArgumentError",
    "UnauthorizedError",
    "OperationalError",
]
