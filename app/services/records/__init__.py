"""
Record Source Layer

Read-only snapshots of the monitored freight record collections.
"""

from app.services.records.service import (
    RecordKind,
    RecordKindSpec,
    MonitoredRecord,
    RecordSource,
    PostgresRecordSource,
    StaticRecordSource,
    RECORD_KINDS,
    get_date_field_label,
    parse_archived,
    records_from_documents,
)
from app.services.records.exceptions import RecordServiceError, RecordSourceUnavailableError

__all__ = [
    "RecordKind",
    "RecordKindSpec",
    "MonitoredRecord",
    "RecordSource",
    "PostgresRecordSource",
    "StaticRecordSource",
    "RECORD_KINDS",
    "get_date_field_label",
    "parse_archived",
    "records_from_documents",
    "RecordServiceError",
    "RecordSourceUnavailableError",
]
