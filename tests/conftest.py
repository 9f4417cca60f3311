"""
Pytest configuration and shared fixtures for the reminder engine tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from app.core.feature_flags import reset_feature_flags
from app.services.ledger import InMemoryLedgerStore, SentNotificationLedger
from app.services.notifications import NotifierDeliveryError, StaticSettingsSource
from app.services.records import RecordKind, StaticRecordSource
from reminders import DateReminderScheduler


class FakeClock:
    """Mutable clock; call it to read the current time"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that remembers every delivered (title, body)"""

    def __init__(self, fail_when: Optional[str] = None):
        self.calls: List[tuple] = []
        self.attempts = 0
        self.fail_when = fail_when  # substring of the body that makes delivery fail

    async def notify(self, title: str, body: str) -> None:
        self.attempts += 1
        if self.fail_when is not None and self.fail_when in body:
            raise NotifierDeliveryError("channel down")
        self.calls.append((title, body))


class FlakyLedgerStore(InMemoryLedgerStore):
    """In-memory store whose load/save can be switched to fail"""

    def __init__(self, entries=None):
        super().__init__(entries)
        self.fail_load = False
        self.fail_save = False

    async def load(self):
        if self.fail_load:
            raise ConnectionError("store unreachable")
        return await super().load()

    async def save(self, entries):
        if self.fail_save:
            raise ConnectionError("store unreachable")
        await super().save(entries)


def make_settings_document(
    export: Optional[Dict[str, bool]] = None,
    import_: Optional[Dict[str, bool]] = None,
    domestic: Optional[Dict[str, bool]] = None,
    timing: Optional[Dict[str, bool]] = None,
) -> Dict[str, Any]:
    """Settings document with everything disabled except what is passed in"""
    document = {
        "exportTable": {"dropDate": False, "returnDate": False, "docCutoffDate": False},
        "importTable": {"etaFinalPod": False, "deliveryDate": False},
        "domesticTruckingTable": {"pickDate": False},
        "notificationTiming": {"threeDays": False, "twoDays": False, "oneDay": False, "dayOf": False},
    }
    document["exportTable"].update(export or {})
    document["importTable"].update(import_ or {})
    document["domesticTruckingTable"].update(domestic or {})
    document["notificationTiming"].update(timing or {})
    return document


@pytest.fixture(autouse=True)
def clean_feature_flags(monkeypatch):
    """Every test starts with default (enabled) kill switches"""
    monkeypatch.delenv("FEATURE_DATE_REMINDERS_ENABLED", raising=False)
    reset_feature_flags()
    yield
    reset_feature_flags()


@pytest.fixture
def today_at_nine():
    """Firing-hour wall clock on 2025-06-10"""
    return datetime(2025, 6, 10, 9, 0, 0)


@pytest.fixture
def utc_clock():
    return FakeClock(datetime(2025, 6, 10, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger_store():
    return FlakyLedgerStore()


@pytest.fixture
def ledger(ledger_store, utc_clock):
    return SentNotificationLedger(ledger_store, retention=timedelta(days=30), clock=utc_clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def drop_date_settings():
    """dropDate monitored for export records at 3 days and day-of"""
    return StaticSettingsSource(make_settings_document(
        export={"dropDate": True},
        timing={"threeDays": True, "dayOf": True},
    ))


@pytest.fixture
def record_source():
    return StaticRecordSource({
        RecordKind.EXPORT: [
            {"id": "exp-1", "customer": "ACME", "archived": False, "dropDate": "2025-06-13"},
        ],
    })


@pytest.fixture
def scheduler(drop_date_settings, record_source, ledger, notifier, today_at_nine):
    return DateReminderScheduler(
        settings_source=drop_date_settings,
        record_source=record_source,
        ledger=ledger,
        notifier=notifier,
        firing_hour=9,
        check_interval=3600,
        clock=lambda: today_at_nine,
    )


@pytest.fixture
def settings_document():
    """Factory for settings documents (see make_settings_document)"""
    return make_settings_document


@pytest.fixture
def make_notifier():
    """Factory for RecordingNotifier instances"""
    return RecordingNotifier


@pytest.fixture
def make_clock():
    return FakeClock
