from __future__ import annotations

import json

import jsonschema

from grooming_backup.models.schema import MUTABLE_TABLES
from grooming_backup.services.backup_service import BackupService

"""Import report shape returned by restore (and serialized by an HTTP layer)."""

_COUNTS = {
    "type": "object",
    "required": ["success", "failed"],
    "additionalProperties": False,
    "properties": {"success": {"type": "integer"}, "failed": {"type": "integer"}},
}

REPORT_SCHEMA = {
    "type": "object",
    "required": ["status", "message", "report"],
    "additionalProperties": False,
    "properties": {
        "status": {"enum": ["success", "partial", "error"]},
        "message": {"type": "string"},
        "report": {
            "type": "object",
            "required": ["summary", "errorsByTable"],
            "properties": {
                "summary": {
                    "type": "object",
                    "required": ["total", "tables", "missingSheets"],
                    "properties": {
                        "total": _COUNTS,
                        "tables": {"type": "object", "additionalProperties": _COUNTS},
                        "missingSheets": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "errorsByTable": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["tableName", "count", "items"],
                        "additionalProperties": False,
                        "properties": {
                            "tableName": {"type": "string"},
                            "count": {"type": "integer", "minimum": 1},
                            "items": {"type": "array", "minItems": 1},
                        },
                    },
                },
            },
        },
    },
}

TRANSACTION_ERROR_SCHEMA = {
    "type": "object",
    "required": ["status", "message", "error", "details"],
    "additionalProperties": False,
    "properties": {
        "status": {"const": "error"},
        "message": {"type": "string"},
        "error": {"type": "string"},
        "details": {"type": "string"},
    },
}


def test_partial_report_shape(provider, workbook_factory):
    service = BackupService(provider)
    service.preview(
        workbook_factory(
            {
                "Customer": [["Id", "Naam"], [1, "Jansen"], [2, None]],
                "Dog": [["Name", "CustomerId"], ["Bello", 1], ["Max", None]],
            }
        )
    )
    status, body = service.restore()
    assert status == 200
    jsonschema.validate(body, REPORT_SCHEMA)
    assert body["status"] == "partial"
    assert list(body["report"]["summary"]["tables"]) == list(MUTABLE_TABLES)
    assert [g["tableName"] for g in body["report"]["errorsByTable"]] == ["Customer", "Dog"]
    json.dumps(body)


def test_transaction_error_shape(provider, sample_workbook):
    import psycopg2

    provider.connect_error = psycopg2.OperationalError("refused")
    service = BackupService(provider)
    service.preview(sample_workbook)
    status, body = service.restore()
    assert status == 500
    jsonschema.validate(body, TRANSACTION_ERROR_SCHEMA)
