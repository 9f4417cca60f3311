"""
Sent-Notification Ledger

Durable set of dedup keys already fired. Each instance owns its store handle;
there is no module-level ledger.

Compaction runs on every load: entries whose sent_at is not newer than
now - retention are dropped (together with unreadable entries and duplicate
keys) and the compacted list is written back immediately.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, List

import config
from app.services.ledger.models import DedupKey, SentNotification
from app.services.ledger.stores import LedgerStore
from app.services.ledger.exceptions import LedgerPersistenceError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SentNotificationLedger:
    def __init__(
        self,
        store: LedgerStore,
        retention: timedelta = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.retention = retention if retention is not None else timedelta(days=config.LEDGER_RETENTION_DAYS)
        self.clock = clock
        self._entries: Dict[DedupKey, SentNotification] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> FrozenSet[DedupKey]:
        return frozenset(self._entries)

    async def load_compacted(self) -> FrozenSet[DedupKey]:
        """
        Load the ledger from the store, dropping expired entries.

        Returns:
            Set of live dedup keys

        Raises:
            LedgerPersistenceError: store read failed, or the compacted list could not be written back
        """
        try:
            raw_entries = await self.store.load()
        except Exception as e:
            raise LedgerPersistenceError(f"Ledger load failed: {e}") from e

        cutoff = self.clock() - self.retention
        entries: Dict[DedupKey, SentNotification] = {}
        dropped = 0
        for raw in raw_entries:
            try:
                entry = SentNotification.from_document(raw)
            except (ValueError, TypeError, OverflowError) as e:
                logger.warning(f"Dropping unreadable ledger entry: {e}")
                dropped += 1
                continue
            if entry.sent_at <= cutoff:
                dropped += 1
                continue
            previous = entries.get(entry.key)
            if previous is not None:
                dropped += 1
                if previous.sent_at >= entry.sent_at:
                    continue
            entries[entry.key] = entry

        self._entries = entries
        self._loaded = True

        if dropped:
            try:
                await self.store.save(self._serialize())
            except Exception as e:
                raise LedgerPersistenceError(f"Ledger compaction write failed: {e}") from e
            logger.info(f"Ledger compacted: dropped={dropped} remaining={len(entries)}")

        return self.keys()

    def contains(self, record_id: str, date_field: str, offset_days: int) -> bool:
        return DedupKey(str(record_id), date_field, offset_days) in self._entries

    async def record(self, record_id: str, date_field: str, offset_days: int) -> SentNotification:
        """
        Append an entry stamped with the current time and persist the full list.

        Raises:
            LedgerPersistenceError: the write failed (the entry is not kept)
        """
        if not self._loaded:
            await self.load_compacted()

        entry = SentNotification(
            record_id=str(record_id),
            date_field=date_field,
            offset_days=offset_days,
            sent_at=self.clock(),
        )
        previous = self._entries.get(entry.key)
        self._entries[entry.key] = entry
        try:
            await self.store.save(self._serialize())
        except Exception as e:
            if previous is None:
                del self._entries[entry.key]
            else:
                self._entries[entry.key] = previous
            raise LedgerPersistenceError(f"Ledger write failed: {e}") from e
        return entry

    def _serialize(self) -> List[dict]:
        return [entry.to_document() for entry in self._entries.values()]
