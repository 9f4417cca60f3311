"""
Sent-notification ledger entries.

Persisted form (one entry of the ledger list):
    {"recordId": "42", "dateFieldName": "dropDate", "offsetDays": 3,
     "sentAtTimestamp": "2025-06-10T09:00:12Z"}

Entries written by earlier versions used dateField / notificationDay / sentAt
(epoch milliseconds); both shapes are accepted on load.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, NamedTuple


class DedupKey(NamedTuple):
    """(record id, date field name, offset days): fired at most once"""
    record_id: str
    date_field: str
    offset_days: int


def _first_present(document: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = document.get(key)
        if value is not None:
            return value
    return None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    elif isinstance(value, (int, float)):
        # epoch milliseconds when too large to be seconds
        seconds = value / 1000 if value > 1e11 else value
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SentNotification:
    record_id: str
    date_field: str
    offset_days: int
    sent_at: datetime

    @property
    def key(self) -> DedupKey:
        return DedupKey(self.record_id, self.date_field, self.offset_days)

    def to_document(self) -> Dict[str, Any]:
        return {
            "recordId": self.record_id,
            "dateFieldName": self.date_field,
            "offsetDays": self.offset_days,
            "sentAtTimestamp": _format_timestamp(self.sent_at),
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "SentNotification":
        """
        Parse a persisted entry.

        Raises:
            ValueError: entry is missing a field or holds an unusable value
        """
        if not isinstance(document, Mapping):
            raise ValueError("ledger entry is not an object")

        record_id = document.get("recordId")
        date_field = _first_present(document, "dateFieldName", "dateField")
        offset = _first_present(document, "offsetDays", "notificationDay")
        sent_at = _first_present(document, "sentAtTimestamp", "sentAt")

        if record_id is None or str(record_id) == "" or not date_field or offset is None or sent_at is None:
            raise ValueError("ledger entry is missing required fields")
        if isinstance(offset, bool):
            raise ValueError("offsetDays must be a number")

        return cls(
            record_id=str(record_id),
            date_field=str(date_field),
            offset_days=int(offset),
            sent_at=_parse_timestamp(sent_at),
        )
