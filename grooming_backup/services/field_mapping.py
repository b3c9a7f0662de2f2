from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.schema import (
    BOOLEAN_FIELDS,
    CUSTOMER_REFERENCE,
    CUSTOMER_REFERENCE_TABLES,
    canonical_lookup,
    customer_reference_aliases,
)

"""Canonical field-name remapping.

Spreadsheet headers arrive in whatever casing the editor left them in. The
functions here rewrite a row onto the canonical (database) field names
declared in the schema registry. Every function returns a new dict.
"""

__all__ = [
    "remap_fields",
    "promote_customer_reference",
    "coerce_booleans",
    "coerce_reference",
]


def coerce_reference(raw: Any) -> Any:
    """Numeric reference text -> int/float, anything else unchanged."""
    if raw is None or isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return int(raw) if float(raw).is_integer() else raw
    text = str(raw).strip()
    if text == "":
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    return int(number) if number.is_integer() else number


def remap_fields(table: str, row: Mapping[str, Any]) -> dict[str, Any]:
    """Rename known aliases to their canonical field name.

    - mapped keys: first non-null value wins when several spellings are present
    - unmapped keys: kept verbatim unless a key with the same lowercase spelling
      is already present (dropped)
    Unknown tables are copied unchanged.
    """
    lookup = canonical_lookup(table)
    if not lookup:
        return dict(row)

    mapped: dict[str, Any] = {}
    for key, value in row.items():
        canonical = lookup.get(key.lower())
        if canonical is None:
            continue
        if mapped.get(canonical) is None:
            mapped[canonical] = value

    result = dict(mapped)
    seen = {k.lower() for k in result}
    for key, value in row.items():
        lower = key.lower()
        if lower in lookup or lower in seen:
            continue
        result[key] = value
        seen.add(lower)
    return result


def promote_customer_reference(
    table: str, row: Mapping[str, Any], eager: Any = None
) -> dict[str, Any]:
    """Ensure Dog / Appointment rows carry CustomerId when any alias has a value.

    eager is the value read directly from the reference column before
    normalization; it takes precedence over an empty CustomerId.
    """
    result = dict(row)
    if table not in CUSTOMER_REFERENCE_TABLES:
        return result
    if result.get(CUSTOMER_REFERENCE) in (None, "") and eager not in (None, ""):
        result[CUSTOMER_REFERENCE] = eager
    aliases = customer_reference_aliases()
    for key in list(result):
        if key == CUSTOMER_REFERENCE or key.lower() not in aliases:
            continue
        value = result.pop(key)
        if result.get(CUSTOMER_REFERENCE) in (None, "") and value not in (None, ""):
            result[CUSTOMER_REFERENCE] = value
    if CUSTOMER_REFERENCE in result:
        result[CUSTOMER_REFERENCE] = coerce_reference(result[CUSTOMER_REFERENCE])
    return result


def coerce_booleans(row: Mapping[str, Any]) -> dict[str, Any]:
    """Re-coerce boolean-coded fields (staged data may have been serialized)."""
    result: dict[str, Any] = {}
    for key, value in row.items():
        if key.lower() in BOOLEAN_FIELDS and value is not None and not isinstance(value, bool):
            if isinstance(value, str):
                value = value.strip().lower() in {"1", "true", "yes"}
            else:
                value = value == 1
        result[key] = value
    return result
