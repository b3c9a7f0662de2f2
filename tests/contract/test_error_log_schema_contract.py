from __future__ import annotations

import json

import jsonschema
import pytest

from grooming_backup.logging.error_log import ErrorLogBuffer
from grooming_backup.models.error_record import DetailedError, ErrorKind
from grooming_backup.models.validation import ValidationError

"""Error log JSON Lines contract test."""

ERROR_LOG_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "timestamp",
        "table",
        "message",
        "rowIdentifier",
        "rowNumber",
        "fields",
        "errorType",
        "details",
    ],
    "properties": {
        "timestamp": {"type": "string", "pattern": "Z$"},
        "table": {"type": "string"},
        "message": {"type": "string"},
        "rowIdentifier": {"type": "string"},
        "rowNumber": {"type": "integer", "minimum": -1},
        "fields": {"type": "array", "items": {"type": "string"}},
        "errorType": {"enum": [k.value for k in ErrorKind]},
        "details": {"type": "object"},
        "validationErrors": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["field", "error", "value"],
                "additionalProperties": False,
                "properties": {
                    "field": {"type": "string"},
                    "error": {"type": "string"},
                    "value": {},
                },
            },
        },
        "sqlError": {"type": "string"},
    },
}


def _record(**overrides) -> DetailedError:
    base = dict(
        table="Customer",
        row_number=3,
        row_identifier='Customer "Jansen"',
        fields=("Naam",),
        kind=ErrorKind.VALIDATION_ERROR,
        message='Validation failed for Customer "Jansen"',
        details={"Naam": "Jansen"},
    )
    base.update(overrides)
    return DetailedError(**base)


@pytest.mark.parametrize(
    "record",
    [
        _record(),
        _record(validation_errors=(ValidationError("Naam", "Value exceeds maximum length of 100", "x"),)),
        _record(kind=ErrorKind.DATABASE_ERROR, sql_error="duplicate key value"),
        _record(table="*", row_number=-1, row_identifier="transaction", fields=(), kind=ErrorKind.TRANSACTION_ERROR),
    ],
)
def test_error_log_line_matches_schema(record, tmp_path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(record)
    line = buf.flush().read_text(encoding="utf-8").strip()
    jsonschema.validate(json.loads(line), ERROR_LOG_SCHEMA)


def test_schema_rejects_extra_key():
    data = json.loads(_record().to_json_line())
    data["extra"] = "not allowed"
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, ERROR_LOG_SCHEMA)
