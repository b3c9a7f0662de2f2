from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..excel.normalizer import parse_datetime
from ..models.schema import CUSTOMER_REFERENCE, CUSTOMER_REFERENCE_TABLES, TABLE_SCHEMAS, FieldSpec
from ..models.validation import RowValidationResult, ValidationError

"""Row validation against the schema registry.

validate_row() runs two passes over a row mapping:

1. table-specific structural rules (customer reference on Dog rows, start and
   end time on appointments, id references on the association tables)
2. the generic FieldSpec rules: required, max length, number, date, boolean

Field lookup is case-insensitive. A field flagged by a structural rule is not
reported again by the generic pass. The row is never modified.
"""

__all__ = [
    "validate_row",
    "check_required_reference",
    "find_value",
]

MISSING_REFERENCE = "missing_reference"

_DOG_CUSTOMER_KEYS = ("CustomerId", "customer_id", "customerId", "CUSTOMERID")

# association table -> (field, accepted spellings, entity label)
_ID_REFERENCES: dict[str, tuple[tuple[str, tuple[str, ...], str], ...]] = {
    "AppointmentDog": (
        ("AppointmentId", ("AppointmentId", "appointmentid", "appointmentId"), "appointment"),
        ("DogId", ("DogId", "dogid", "dogId"), "dog"),
    ),
    "ServiceAppointmentDog": (
        (
            "AppointmentDogId",
            ("AppointmentDogId", "appointmentdogid", "appointmentDogId"),
            "appointmentDog",
        ),
        ("ServiceId", ("ServiceId", "serviceid", "serviceId"), "service"),
    ),
}


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def find_value(row: Mapping[str, Any], field_name: str) -> Any:
    """Case-insensitive field lookup; exact key wins over case variants."""
    if field_name in row:
        return row[field_name]
    lower = field_name.lower()
    for key, value in row.items():
        if key.lower() == lower:
            return value
    return None


def _first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = row.get(key)
        if not _is_blank(value):
            return value
    return None


def _reference_value(row: Mapping[str, Any]) -> Any:
    value = find_value(row, CUSTOMER_REFERENCE)
    if _is_blank(value):
        value = _first_present(row, _DOG_CUSTOMER_KEYS)
    return value


def _dog_label(row: Mapping[str, Any]) -> str:
    return str(row.get("name") or row.get("Name") or "unnamed")


def check_required_reference(table: str, row: Mapping[str, Any]) -> ValidationError | None:
    """Customer reference presence check for Dog and Appointment rows.

    None, "" and 0 all count as missing.
    """
    if table not in CUSTOMER_REFERENCE_TABLES:
        return None
    value = _reference_value(row)
    if not _is_blank(value) and value != 0:
        return None
    if table == "Dog":
        message = f'Dog "{_dog_label(row)}" is missing required customer ID reference'
    else:
        message = "Appointment is missing required customer ID reference"
    return ValidationError(CUSTOMER_REFERENCE, message, None, kind=MISSING_REFERENCE)


def _structural_errors(table: str, row: Mapping[str, Any]) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if table == "Dog":
        if _first_present(row, _DOG_CUSTOMER_KEYS) is None:
            errors.append(
                ValidationError(
                    CUSTOMER_REFERENCE,
                    f'Dog "{_dog_label(row)}" is missing required customer ID reference',
                    None,
                    kind=MISSING_REFERENCE,
                )
            )
    elif table == "Appointment":
        if not (row.get("TimeStart") or row.get("timestart")):
            errors.append(ValidationError("TimeStart", "Start time is required for appointments"))
        if not (row.get("TimeEnd") or row.get("timeend")):
            errors.append(ValidationError("TimeEnd", "End time is required for appointments"))
    for field_name, keys, label in _ID_REFERENCES.get(table, ()):
        if _first_present(row, keys) is None:
            errors.append(
                ValidationError(
                    field_name,
                    f"{table} record is missing required {label} ID reference",
                    None,
                    kind=MISSING_REFERENCE,
                )
            )
    return errors


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value).strip())
    except ValueError:
        return False
    return True


def _field_errors(spec: FieldSpec, value: Any) -> list[ValidationError]:
    if spec.required and _is_blank(value):
        return [ValidationError(spec.name, "Required field is missing", None)]
    if _is_blank(value):
        return []
    errors: list[ValidationError] = []
    if spec.type == "string" and spec.max_length and len(str(value)) > spec.max_length:
        errors.append(
            ValidationError(spec.name, f"Value exceeds maximum length of {spec.max_length}", value)
        )
    if spec.type == "number" and not _is_number(value):
        errors.append(ValidationError(spec.name, "Value must be a number", value))
    if spec.type == "date" and parse_datetime(value) is None:
        errors.append(ValidationError(spec.name, "Invalid date format", value))
    if spec.type == "boolean" and not isinstance(value, bool):
        errors.append(ValidationError(spec.name, "Value must be a boolean", value))
    return errors


def validate_row(table: str, row: Mapping[str, Any], row_number: int) -> RowValidationResult:
    schema = TABLE_SCHEMAS.get(table)
    if schema is None:
        return RowValidationResult(
            table=table,
            row_number=row_number,
            errors=(ValidationError("schema", "Table schema not found", None),),
        )

    errors = _structural_errors(table, row)
    flagged = {e.field.lower() for e in errors}
    for spec in schema.fields:
        if spec.name.lower() in flagged:
            continue
        if table in CUSTOMER_REFERENCE_TABLES and spec.name == CUSTOMER_REFERENCE:
            value = _reference_value(row)
        else:
            value = find_value(row, spec.name)
        errors.extend(_field_errors(spec, value))
    return RowValidationResult(table=table, row_number=row_number, errors=tuple(errors))
