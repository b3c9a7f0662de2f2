from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

"""Schema registry for the backup workbook.

Declares, per logical table, the expected fields (type, required flag, max
length), the allow-list of mutable tables, the order in which they are cleared
and the canonical field alias table used to repair header casing.

Everything here is plain data. The alias lookups are built once at import time
and a conflicting alias declaration raises SchemaRegistryError immediately.
"""

__all__ = [
    "FieldSpec",
    "TableSchema",
    "SchemaRegistryError",
    "MUTABLE_TABLES",
    "CLEAR_ORDER",
    "TABLE_SCHEMAS",
    "FIELD_ALIASES",
    "CUSTOMER_REFERENCE",
    "CUSTOMER_REFERENCE_TABLES",
    "BOOLEAN_FIELDS",
    "TIMESTAMP_FIELDS",
    "resolve_table_name",
    "canonical_lookup",
    "customer_reference_aliases",
]

FieldType = Literal["string", "number", "date", "boolean"]


class SchemaRegistryError(Exception):
    """Raised when the registry declarations contradict each other."""


@dataclass(frozen=True)
class FieldSpec:
    name: str  # canonical (database) column name
    type: FieldType
    required: bool = False
    max_length: int | None = None


@dataclass(frozen=True)
class TableSchema:
    table: str
    fields: tuple[FieldSpec, ...]


# Export order == import order (parents before children)
MUTABLE_TABLES: tuple[str, ...] = (
    "Customer",
    "Dog",
    "Appointment",
    "AppointmentDog",
    "AdditionalHour",
    "DogDogbreed",
    "ServiceAppointmentDog",
)

# Leaf association tables first
CLEAR_ORDER: tuple[str, ...] = (
    "ServiceAppointmentDog",
    "DogDogbreed",
    "AdditionalHour",
    "AppointmentDog",
    "Appointment",
    "Dog",
    "Customer",
)

CUSTOMER_REFERENCE = "CustomerId"
CUSTOMER_REFERENCE_TABLES: frozenset[str] = frozenset({"Dog", "Appointment"})


def _schema(table: str, *fields: FieldSpec) -> TableSchema:
    return TableSchema(table=table, fields=tuple(fields))


TABLE_SCHEMAS: dict[str, TableSchema] = {
    "Customer": _schema(
        "Customer",
        FieldSpec("Naam", "string", required=True, max_length=100),
        FieldSpec("Contactpersoon", "string", max_length=100),
        FieldSpec("Emailadres", "string", max_length=100),
        FieldSpec("Telefoonnummer", "string", max_length=20),
        FieldSpec("Notities", "string", max_length=500),
        FieldSpec("IsAllowContactShare", "string", max_length=7),
        FieldSpec("CreatedOn", "date"),
        FieldSpec("UpdatedOn", "date"),
    ),
    "Dog": _schema(
        "Dog",
        FieldSpec("Name", "string", required=True, max_length=50),
        FieldSpec("Breed", "string", max_length=50),
        FieldSpec("Birthday", "date"),
        FieldSpec("Weight", "number"),
        FieldSpec("CustomerId", "number", required=True),
        FieldSpec("Allergies", "string"),
        FieldSpec("ServiceNote", "string"),
        FieldSpec("DogSizeId", "string", max_length=50),
    ),
    "Appointment": _schema(
        "Appointment",
        FieldSpec("Date", "date", required=True),
        FieldSpec("TimeStart", "string", required=True, max_length=10),
        FieldSpec("TimeEnd", "string", required=True, max_length=10),
        FieldSpec("DateEnd", "date"),
        FieldSpec("ActualDuration", "number"),
        FieldSpec("CustomerId", "number", required=True),
        FieldSpec("AppointmentStatusId", "string", required=True, max_length=20),
        FieldSpec("Note", "string", max_length=500),
        FieldSpec("SerialNumber", "number"),
        FieldSpec("IsPaidInCash", "boolean"),
    ),
    "AppointmentDog": _schema(
        "AppointmentDog",
        FieldSpec("AppointmentId", "number", required=True),
        FieldSpec("DogId", "number", required=True),
        FieldSpec("Note", "string"),
    ),
    "AdditionalHour": _schema(
        "AdditionalHour",
        FieldSpec("HourTypeId", "string", max_length=20),
        FieldSpec("Duration", "number", required=True),
        FieldSpec("Date", "date"),
        FieldSpec("Description", "string"),
        FieldSpec("IsExported", "boolean"),
    ),
    "DogDogbreed": _schema(
        "DogDogbreed",
        FieldSpec("DogId", "number", required=True),
        FieldSpec("DogbreedId", "string", required=True, max_length=50),
    ),
    "ServiceAppointmentDog": _schema(
        "ServiceAppointmentDog",
        FieldSpec("AppointmentDogId", "number", required=True),
        FieldSpec("ServiceId", "string", required=True, max_length=50),
        FieldSpec("Price", "number"),
    ),
}

# canonical field -> extra accepted spellings. Every schema field and "Id" are
# always accepted in any casing; only the additional spellings are listed.
FIELD_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "Dog": {
        "Birthday": ("birth_date",),
        "CustomerId": ("customer_id",),
    },
    "Appointment": {
        "CustomerId": ("customer_id",),
        "IsPaidInCash": ("is_paid_in_cash",),
    },
}

BOOLEAN_FIELDS: frozenset[str] = frozenset(
    spec.name.lower()
    for schema in TABLE_SCHEMAS.values()
    for spec in schema.fields
    if spec.type == "boolean"
)

TIMESTAMP_FIELDS: frozenset[str] = frozenset({"createdon", "updatedon"})


def _build_lookups() -> dict[str, dict[str, str]]:
    unknown = set(FIELD_ALIASES) - set(TABLE_SCHEMAS)
    if unknown:
        raise SchemaRegistryError(f"aliases declared for unknown table(s): {sorted(unknown)}")
    lookups: dict[str, dict[str, str]] = {}
    for table, schema in TABLE_SCHEMAS.items():
        aliases = FIELD_ALIASES.get(table, {})
        fields = ("Id", *(spec.name for spec in schema.fields))
        known = set(fields)
        if not set(aliases) <= known:
            raise SchemaRegistryError(
                f"table '{table}': aliases declared for unknown field(s) {sorted(set(aliases) - known)}"
            )
        lookup: dict[str, str] = {}
        for canonical in fields:
            lookup[canonical.lower()] = canonical
        for canonical, extra in aliases.items():
            for spelling in (canonical, *extra):
                key = spelling.lower()
                owner = lookup.get(key)
                if owner is not None and owner != canonical:
                    raise SchemaRegistryError(
                        f"table '{table}': alias '{spelling}' claimed by both '{owner}' and '{canonical}'"
                    )
                lookup[key] = canonical
        lookups[table] = lookup
    return lookups


_CANONICAL_LOOKUPS = _build_lookups()
_TABLE_NAMES = {t.lower(): t for t in MUTABLE_TABLES}


def resolve_table_name(sheet_name: str) -> str | None:
    """Map a sheet name to its logical table (case-insensitive), None if not allow-listed."""
    return _TABLE_NAMES.get(str(sheet_name).strip().lower())


def canonical_lookup(table: str) -> dict[str, str]:
    """Lowercase spelling -> canonical field name (empty for an unknown table)."""
    return _CANONICAL_LOOKUPS.get(table, {})


def customer_reference_aliases() -> frozenset[str]:
    """Every lowercase header spelling that denotes the customer reference."""
    spellings = {CUSTOMER_REFERENCE.lower()}
    for table in CUSTOMER_REFERENCE_TABLES:
        spellings.update(
            key for key, canonical in canonical_lookup(table).items() if canonical == CUSTOMER_REFERENCE
        )
    return frozenset(spellings)
