"""Domain models for the grooming salon backup / restore engine.

This package contains the schema registry and the value objects passed between
the previewer, the staging store and the importer.
"""

from .error_record import DetailedError, ErrorKind
from .import_outcome import ImportOutcome, TableOutcome
from .row_data import RowData
from .schema import FieldSpec, TableSchema
from .validation import RowValidationResult, ValidationError

__all__ = [
    # Schema registry
    "FieldSpec",
    "TableSchema",
    # Pipeline models
    "RowData",
    "ValidationError",
    "RowValidationResult",
    # Import reporting
    "DetailedError",
    "ErrorKind",
    "ImportOutcome",
    "TableOutcome",
]
