"""
Unit tests for record snapshots and record sources.
"""
import pytest
from unittest.mock import patch, AsyncMock

import database
from app.services.notifications.exceptions import RecordSourceUnavailableError
from app.services.records.service import (
    MonitoredRecord,
    PostgresRecordSource,
    RecordKind,
    StaticRecordSource,
    get_date_field_label,
    parse_archived,
    records_from_documents,
)


class TestParseArchived:
    """archived arrives as bool or string depending on the collection"""

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (False, False),
        (None, False),
        ("true", True),
        ("TRUE", True),
        ("false", False),
        ("", False),
        (1, True),
    ])
    def test_values(self, value, expected):
        assert parse_archived(value) is expected


class TestMonitoredRecord:
    """Tests for MonitoredRecord.from_document"""

    def test_from_document(self):
        record = MonitoredRecord.from_document(
            {"id": 17, "customer": "ACME", "archived": "true", "dropDate": "2025-06-13", "booking": "X1"},
            RecordKind.EXPORT,
        )

        assert record.id == "17"
        assert record.customer_label == "ACME"
        assert record.archived is True
        assert record.date_value("dropDate") == "2025-06-13"
        assert record.date_value("returnDate") == ""

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            MonitoredRecord.from_document({"customer": "ACME"}, RecordKind.IMPORT)

    def test_non_string_dates_become_unset(self):
        record = MonitoredRecord.from_document({"id": "a", "pickDate": 20250613}, RecordKind.DOMESTIC_TRUCKING)
        assert record.date_value("pickDate") == ""

    def test_records_from_documents_skips_malformed(self):
        records = records_from_documents(
            [{"id": "a"}, {"customer": "no id"}, "garbage", {"id": "b"}],
            RecordKind.EXPORT,
        )
        assert [r.id for r in records] == ["a", "b"]

    def test_field_labels(self):
        assert get_date_field_label(RecordKind.IMPORT, "etaFinalPod") == "ETA Final POD"
        assert get_date_field_label(RecordKind.IMPORT, "unknownField") == "unknownField"


class TestRecordSources:
    """Tests for record sources"""

    @pytest.mark.asyncio
    async def test_static_source(self):
        source = StaticRecordSource({
            RecordKind.EXPORT: [{"id": "a"}],
            RecordKind.IMPORT: [{"id": "i1"}],
        })
        assert [r.id for r in await source.load(RecordKind.EXPORT)] == ["a"]
        assert [r.kind for r in await source.load(RecordKind.IMPORT)] == [RecordKind.IMPORT]
        assert await source.load(RecordKind.DOMESTIC_TRUCKING) == []

    @pytest.mark.asyncio
    async def test_postgres_source_reads_collection_for_owner(self):
        fetch = AsyncMock(return_value=[{"id": "e1", "dropDate": "2025-06-13"}])
        with patch("database.get_collection_records", fetch):
            records = await PostgresRecordSource("user-1").load(RecordKind.EXPORT)

        fetch.assert_awaited_once_with("export_tracking", user_id="user-1")
        assert records[0].date_value("dropDate") == "2025-06-13"

    @pytest.mark.asyncio
    async def test_postgres_source_unavailable(self):
        fetch = AsyncMock(side_effect=database.DatabaseUnavailableError("Database not ready"))
        with patch("database.get_collection_records", fetch):
            with pytest.raises(RecordSourceUnavailableError) as exc_info:
                await PostgresRecordSource().load(RecordKind.DOMESTIC_TRUCKING)

        assert exc_info.value.kind == "domesticTrucking"
