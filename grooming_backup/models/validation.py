from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any

"""Validation result models shared by the previewer and the importer."""

__all__ = [
    "ValidationError",
    "RowValidationResult",
]


@dataclass(frozen=True)
class ValidationError:
    """A single field-level validation failure.

    kind is either "validation_error" or "missing_reference"; it is used to
    classify import failures and is not part of the serialized form.
    """
    field: str
    error: str
    value: Any = None
    kind: str = dataclass_field(default="validation_error", compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "error": self.error, "value": self.value}

    def describe(self) -> str:
        suffix = f" (value: {self.value})" if self.value is not None else ""
        return f'Field "{self.field}": {self.error}{suffix}'


@dataclass(frozen=True)
class RowValidationResult:
    table: str
    row_number: int
    errors: tuple[ValidationError, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "rowNumber": self.row_number,
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
