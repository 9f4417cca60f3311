"""
Date Reminder Service

Business logic for deciding which reminders are due. Pure functions only:
no I/O, no clock access (callers pass "today"), no logging side effects beyond
debug traces.

The window rule fires each (record, field, lead time) on exactly one calendar
day: the date must be within N days of today but not within N-1 days.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator, Optional

from app.services.ledger.models import DedupKey
from app.services.notifications.exceptions import InvalidLeadTimeError
from app.services.notifications.settings import AlertConfiguration, LeadTime
from app.services.records.service import MonitoredRecord, RecordKind, get_date_field_label
from app.utils.date_utils import format_date_us

logger = logging.getLogger(__name__)


VALID_OFFSETS = frozenset(lt.days for lt in LeadTime)


# ====================================================================================
# Window Evaluation
# ====================================================================================

def parse_date_value(value: Any) -> Optional[date]:
    """
    Calendar date of a record date value.

    Accepts date/datetime objects, "YYYY-MM-DD" strings and ISO timestamps
    (only the date part is used). Returns None for empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_date_within_days(target: date, days: int, today: date) -> bool:
    """True if target falls in the inclusive window [today, today + days]."""
    return today <= target <= today + timedelta(days=days)


def is_due(date_value: Any, offset_days: int, today: date) -> bool:
    """
    Check whether a reminder for date_value at the given lead time is due today.

    Args:
        date_value: Raw date of the record field ("" / None = unset)
        offset_days: Lead time in days, one of 3, 2, 1, 0
        today: Local calendar day of the evaluation

    Returns:
        True only on the single day the reminder should fire

    Raises:
        InvalidLeadTimeError: offset_days outside the closed set
    """
    if offset_days not in VALID_OFFSETS:
        raise InvalidLeadTimeError(f"Unsupported lead time: {offset_days}")

    target = parse_date_value(date_value)
    if target is None:
        return False

    if offset_days == 0:
        return target == today

    return (
        is_date_within_days(target, offset_days, today)
        and not is_date_within_days(target, offset_days - 1, today)
    )


# ====================================================================================
# Candidates
# ====================================================================================

@dataclass(frozen=True)
class ReminderCandidate:
    """A due reminder for one (record, date field, lead time)"""
    record: MonitoredRecord
    field_name: str
    field_label: str
    lead_time: LeadTime
    due_date: date

    @property
    def kind(self) -> RecordKind:
        return self.record.kind

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey(self.record.id, self.field_name, self.lead_time.days)


def iter_due_candidates(
    records: Iterable[MonitoredRecord],
    configuration: AlertConfiguration,
    today: date,
) -> Iterator[ReminderCandidate]:
    """
    Yield due reminders in record, field, lead time order.

    Archived records and empty field values never produce candidates.
    Ledger membership is NOT checked here.
    """
    for record in records:
        if record.archived:
            continue
        for field_name in configuration.fields_for(record.kind):
            raw_value = record.date_value(field_name)
            if not raw_value:
                continue
            target = parse_date_value(raw_value)
            if target is None:
                logger.debug(f"Unparseable {field_name} on record {record.id}: {raw_value!r}")
                continue
            for lead_time in configuration.lead_times:
                if is_due(target, lead_time.days, today):
                    yield ReminderCandidate(
                        record=record,
                        field_name=field_name,
                        field_label=get_date_field_label(record.kind, field_name),
                        lead_time=lead_time,
                        due_date=target,
                    )


# ====================================================================================
# Message Content
# ====================================================================================

@dataclass(frozen=True)
class ReminderMessage:
    title: str
    body: str


def build_reminder_message(candidate: ReminderCandidate) -> ReminderMessage:
    """Title: "<label> Today" / "<label> in N days"; body: "<customer> - <label>: M/D/YYYY"."""
    if candidate.lead_time is LeadTime.DAY_OF:
        title = f"{candidate.field_label} Today"
    else:
        title = f"{candidate.field_label} in {candidate.lead_time.label}"

    customer = candidate.record.customer_label or "Unknown customer"
    body = f"{customer} - {candidate.field_label}: {format_date_us(candidate.due_date)}"
    return ReminderMessage(title=title, body=body)
