"""
Ledger persistence backends.

Every backend stores the ledger as ONE list of entry documents that is read
and rewritten as a whole. Backends raise whatever their driver raises; the
ledger maps failures to LedgerPersistenceError.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

import database

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    async def load(self) -> List[Dict[str, Any]]:
        ...

    async def save(self, entries: List[Dict[str, Any]]) -> None:
        ...


def _as_entry_list(value: Any, source: str) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning(f"Ledger document in {source} is not a list, starting empty")
        return []
    return list(value)


def _copy_entries(entries: Iterable[Any]) -> List[Any]:
    return [dict(e) if isinstance(e, Mapping) else e for e in entries]


class InMemoryLedgerStore:
    """Process-local store for tests and embedded use. Keeps copies of what was saved."""

    def __init__(self, entries: Optional[List[Dict[str, Any]]] = None):
        self.entries: List[Any] = _copy_entries(entries or [])
        self.saves = 0

    async def load(self) -> List[Dict[str, Any]]:
        return _copy_entries(self.entries)

    async def save(self, entries: List[Dict[str, Any]]) -> None:
        self.entries = _copy_entries(entries)
        self.saves += 1


class PostgresLedgerStore:
    """Ledger list kept in the app_documents table."""

    def __init__(self, document_key: str = database.LEDGER_DOCUMENT_KEY):
        self.document_key = document_key

    async def load(self) -> List[Dict[str, Any]]:
        return _as_entry_list(await database.get_document(self.document_key), "postgres")

    async def save(self, entries: List[Dict[str, Any]]) -> None:
        await database.put_document(self.document_key, entries)


class RedisLedgerStore:
    """Ledger list kept as one JSON string value in Redis."""

    def __init__(self, client, key: str):
        self.client = client
        self.key = key

    async def load(self) -> List[Dict[str, Any]]:
        raw = await self.client.get(self.key)
        if raw is None:
            return []
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning(f"Ledger value at {self.key} is not valid JSON, starting empty")
            return []
        return _as_entry_list(value, "redis")

    async def save(self, entries: List[Dict[str, Any]]) -> None:
        await self.client.set(self.key, json.dumps(entries))
