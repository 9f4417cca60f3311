"""
Integration tests for the reminder cycle with in-memory collaborators.

Tests:
1. Three-cycle dropDate scenario (3-day reminder, same-day repeat, day-of reminder)
2. Dedup across repeated cycles
3. Archived and empty-field records never notify
4. Firing-hour gate
5. Failure isolation (notifier, record source, ledger, settings)
"""
import pytest
from datetime import datetime, timedelta, timezone

from app.services.ledger import SentNotificationLedger
from app.services.notifications import RecordSourceUnavailableError, StaticSettingsSource
from app.services.records import RecordKind, StaticRecordSource
from reminders import DateReminderScheduler


def _scheduler(settings, records, ledger, notifier):
    return DateReminderScheduler(
        settings_source=settings,
        record_source=records,
        ledger=ledger,
        notifier=notifier,
        firing_hour=9,
        check_interval=3600,
    )


class UnavailableForKind(StaticRecordSource):
    """Record source that cannot load one kind"""

    def __init__(self, documents, broken_kind):
        super().__init__(documents)
        self.broken_kind = broken_kind

    async def load(self, kind):
        if kind is self.broken_kind:
            raise RecordSourceUnavailableError(kind.value, "timeout")
        return await super().load(kind)


class TestDropDateScenario:
    """dropDate monitored at {3, 0}; record dropDate = today + 3"""

    @pytest.mark.asyncio
    async def test_three_cycles(self, scheduler, notifier, utc_clock):
        first = await scheduler.tick(datetime(2025, 6, 10, 9, 0))
        assert first.outcome == "success"
        assert notifier.calls == [("Drop Date in 3 days", "ACME - Drop Date: 6/13/2025")]

        second = await scheduler.tick(datetime(2025, 6, 10, 9, 45))
        assert second.sent == 0
        assert second.already_sent == 1
        assert len(notifier.calls) == 1

        utc_clock.advance(days=3)
        third = await scheduler.tick(datetime(2025, 6, 13, 9, 5))
        assert third.sent == 1
        assert notifier.calls[-1] == ("Drop Date Today", "ACME - Drop Date: 6/13/2025")
        assert len(notifier.calls) == 2

    @pytest.mark.asyncio
    async def test_same_key_never_fires_twice(self, scheduler, notifier):
        for minute in range(0, 60, 10):
            await scheduler.run_cycle(datetime(2025, 6, 10, 9, minute))

        assert len(notifier.calls) == 1
        assert scheduler.last_cycle.already_sent == 1
        assert scheduler.ledger.contains("exp-1", "dropDate", 3) is True

    @pytest.mark.asyncio
    async def test_dedup_survives_new_ledger_instance(self, scheduler, notifier, ledger_store, utc_clock):
        await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        scheduler.ledger = SentNotificationLedger(ledger_store, retention=timedelta(days=30), clock=utc_clock)
        await scheduler.run_cycle(datetime(2025, 6, 10, 9, 30))

        assert len(notifier.calls) == 1


class TestRecordFiltering:
    """Archived records and empty fields"""

    @pytest.mark.asyncio
    async def test_archived_records_never_notify(self, settings_document, ledger, notifier):
        settings = StaticSettingsSource(settings_document(
            export={"dropDate": True, "returnDate": True},
            timing={"threeDays": True, "twoDays": True, "oneDay": True, "dayOf": True},
        ))
        records = StaticRecordSource({RecordKind.EXPORT: [
            {"id": "a1", "customer": "ACME", "archived": True, "dropDate": "2025-06-10"},
            {"id": "a2", "customer": "ACME", "archived": "true", "returnDate": "2025-06-13"},
        ]})

        result = await _scheduler(settings, records, ledger, notifier).run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "success"
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_empty_field_never_notifies(self, settings_document, ledger, notifier):
        settings = StaticSettingsSource(settings_document(
            import_={"etaFinalPod": True, "deliveryDate": True},
            timing={"dayOf": True},
        ))
        records = StaticRecordSource({RecordKind.IMPORT: [
            {"id": "i1", "customer": "Globex", "etaFinalPod": "", "deliveryDate": "2025-06-10"},
        ]})

        await _scheduler(settings, records, ledger, notifier).run_cycle(datetime(2025, 6, 10, 9, 0))

        assert notifier.calls == [("Delivery Date Today", "Globex - Delivery Date: 6/10/2025")]


class TestFiringHourGate:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hour", [0, 8, 10, 23])
    async def test_other_hours_do_nothing(self, scheduler, notifier, ledger_store, hour):
        result = await scheduler.tick(datetime(2025, 6, 10, hour, 0))

        assert result.outcome == "skipped"
        assert result.reason == "outside_firing_hour"
        assert notifier.calls == []
        assert ledger_store.saves == 0


class TestFailureIsolation:
    """Failure taxonomy handling inside one cycle"""

    @pytest.mark.asyncio
    async def test_missing_configuration_skips_cycle(self, record_source, ledger, notifier):
        scheduler = _scheduler(StaticSettingsSource(None), record_source, ledger, notifier)

        result = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "skipped"
        assert result.reason == "no_configuration"
        assert ledger.loaded is False

    @pytest.mark.asyncio
    async def test_notifier_failure_not_recorded_and_retried(self, settings_document, ledger, make_notifier):
        settings = StaticSettingsSource(settings_document(export={"dropDate": True}, timing={"dayOf": True}))
        records = StaticRecordSource({RecordKind.EXPORT: [
            {"id": "bad", "customer": "Initech", "dropDate": "2025-06-10"},
            {"id": "good", "customer": "ACME", "dropDate": "2025-06-10"},
        ]})
        notifier = make_notifier(fail_when="Initech")
        scheduler = _scheduler(settings, records, ledger, notifier)

        result = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "degraded"
        assert result.delivery_failures == 1
        assert result.sent == 1
        assert ledger.contains("bad", "dropDate", 0) is False
        assert ledger.contains("good", "dropDate", 0) is True

        notifier.fail_when = None
        await scheduler.run_cycle(datetime(2025, 6, 10, 9, 30))
        assert [body for _, body in notifier.calls] == [
            "ACME - Drop Date: 6/10/2025",
            "Initech - Drop Date: 6/10/2025",
        ]

    @pytest.mark.asyncio
    async def test_unavailable_kind_skipped_others_continue(self, settings_document, ledger, notifier):
        settings = StaticSettingsSource(settings_document(
            export={"dropDate": True},
            domestic={"pickDate": True},
            timing={"dayOf": True},
        ))
        records = UnavailableForKind(
            {
                RecordKind.EXPORT: [{"id": "e1", "customer": "ACME", "dropDate": "2025-06-10"}],
                RecordKind.DOMESTIC_TRUCKING: [{"id": "d1", "customer": "Hooli", "pickDate": "2025-06-10"}],
            },
            broken_kind=RecordKind.EXPORT,
        )

        result = await _scheduler(settings, records, ledger, notifier).run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "degraded"
        assert result.unavailable_kinds == ["export"]
        assert notifier.calls == [("Pick Date Today", "Hooli - Pick Date: 6/10/2025")]

    @pytest.mark.asyncio
    async def test_ledger_write_failure_aborts_cycle(self, settings_document, ledger, ledger_store, notifier):
        settings = StaticSettingsSource(settings_document(export={"dropDate": True}, timing={"dayOf": True}))
        records = StaticRecordSource({RecordKind.EXPORT: [
            {"id": "e1", "customer": "ACME", "dropDate": "2025-06-10"},
            {"id": "e2", "customer": "Globex", "dropDate": "2025-06-10"},
        ]})
        scheduler = _scheduler(settings, records, ledger, notifier)
        await ledger.load_compacted()
        ledger_store.fail_save = True

        result = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "failed"
        assert result.reason == "ledger_write_failed"
        assert len(notifier.calls) == 1

        # next cycle retries everything that was not durably recorded
        ledger_store.fail_save = False
        await scheduler.run_cycle(datetime(2025, 6, 10, 9, 30))
        assert len(notifier.calls) == 3
        assert len(ledger_store.entries) == 2

    @pytest.mark.asyncio
    async def test_ledger_load_failure_aborts_before_notifying(self, scheduler, ledger_store, notifier):
        ledger_store.fail_load = True

        result = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        assert result.outcome == "failed"
        assert result.reason == "ledger_unavailable"
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_expired_ledger_entries_compacted_during_cycle(self, scheduler, ledger_store):
        ledger_store.entries = [{
            "recordId": "gone",
            "dateFieldName": "pickDate",
            "offsetDays": 0,
            "sentAtTimestamp": (datetime(2025, 6, 10, 9, 0, tzinfo=timezone.utc) - timedelta(days=45)).isoformat(),
        }]

        await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))

        assert [e["recordId"] for e in ledger_store.entries] == ["exp-1"]

    @pytest.mark.asyncio
    async def test_corrupt_ledger_entries_do_not_block_reminders(self, scheduler, ledger_store, notifier):
        ledger_store.entries = ["garbage", 42, None]

        first = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 0))
        second = await scheduler.run_cycle(datetime(2025, 6, 10, 9, 30))

        assert first.outcome == "success"
        assert first.sent == 1
        assert second.outcome == "success"
        assert second.already_sent == 1
        assert len(notifier.calls) == 1
        assert [e["recordId"] for e in ledger_store.entries] == ["exp-1"]
