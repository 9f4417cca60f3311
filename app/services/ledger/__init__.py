"""
Sent-Notification Ledger

Dedup state of the reminder engine: which (record, field, lead time) keys
were already fired.
"""

from app.services.ledger.models import DedupKey, SentNotification
from app.services.ledger.stores import (
    LedgerStore,
    InMemoryLedgerStore,
    PostgresLedgerStore,
    RedisLedgerStore,
)
from app.services.ledger.ledger import SentNotificationLedger
from app.services.ledger.exceptions import LedgerServiceError, LedgerPersistenceError

__all__ = [
    "DedupKey",
    "SentNotification",
    "LedgerStore",
    "InMemoryLedgerStore",
    "PostgresLedgerStore",
    "RedisLedgerStore",
    "SentNotificationLedger",
    "LedgerServiceError",
    "LedgerPersistenceError",
]
