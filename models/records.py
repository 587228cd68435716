"""
models/records.py
-----------------
Plain data returned by the services: tabular result sets, insert outcomes
and credential-check outcomes. All of them serialize to JSON directly.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass
class ResultSet:
    """
    Generic tabular result of a query or stored procedure.

    Attributes:
        columns: Column names in result order.
        rows: One dict per row, keyed by column name.
        truncated: True when the row cap cut the result short.
    """
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    truncated: bool = False

    @classmethod
    def empty(cls) -> "ResultSet":
        return cls()

    @classmethod
    def from_cursor_rows(cls, columns: list[str], rows: list[tuple], truncated: bool = False) -> "ResultSet":
        """Build a ResultSet from DB-API column names and row tuples."""
        return cls(
            columns=list(columns),
            rows=[dict(zip(columns, row)) for row in rows],
            truncated=truncated,
        )

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rows": [dict(r) for r in self.rows],
            "total": len(self.rows),
            "truncated": self.truncated,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class CreateResult:
    """
    Outcome of an insert.

    Attributes:
        success: Whether the backend reported the row as inserted.
        key_value: Generated primary key value, if the backend returned one.
        key_field: Column holding the generated key.
        record: The inserted row as echoed back by the backend.
    """
    success: bool
    key_value: Any = None
    key_field: Optional[str] = None
    record: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "key_value": self.key_value,
            "key_field": self.key_field,
            "record": self.record,
        }


class CredentialOutcome(Enum):
    NOT_FOUND = 404
    WRONG_SECRET = 401
    VALID = 200


_OUTCOME_MESSAGES = {
    CredentialOutcome.NOT_FOUND: "user not found",
    CredentialOutcome.WRONG_SECRET: "incorrect secret",
    CredentialOutcome.VALID: "valid",
}


@dataclass(frozen=True)
class CredentialCheckResult:
    """Tagged result of a credential verification."""
    outcome: CredentialOutcome
    message: str

    @classmethod
    def of(cls, outcome: CredentialOutcome) -> "CredentialCheckResult":
        return cls(outcome=outcome, message=_OUTCOME_MESSAGES[outcome])

    @property
    def status_code(self) -> int:
        return self.outcome.value

    @property
    def is_valid(self) -> bool:
        return self.outcome is CredentialOutcome.VALID

    def to_dict(self) -> dict[str, Any]:
        return {"status_code": self.status_code, "message": self.message}
