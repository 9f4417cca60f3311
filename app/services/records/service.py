"""
Record Source Service

Adapts the host's record documents (export, import and domestic trucking
collections) into MonitoredRecord snapshots consumed by the reminder engine.

The engine only reads snapshots; records are never mutated here.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import asyncpg

import database
from app.services.records.exceptions import RecordSourceUnavailableError

logger = logging.getLogger(__name__)


# ====================================================================================
# Record Kinds
# ====================================================================================

class RecordKind(Enum):
    """Monitored record collections"""
    EXPORT = "export"
    IMPORT = "import"
    DOMESTIC_TRUCKING = "domesticTrucking"


@dataclass(frozen=True)
class RecordKindSpec:
    """Static description of a record kind"""
    kind: RecordKind
    settings_key: str  # section name in the notification settings document
    collection: str  # collection name in the record store
    date_fields: Tuple[Tuple[str, str], ...]  # ordered (field name, human label)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.date_fields)


RECORD_KINDS: Dict[RecordKind, RecordKindSpec] = {
    RecordKind.EXPORT: RecordKindSpec(
        kind=RecordKind.EXPORT,
        settings_key="exportTable",
        collection="export_tracking",
        date_fields=(
            ("dropDate", "Drop Date"),
            ("returnDate", "Return Date"),
            ("docCutoffDate", "Doc Cutoff Date"),
        ),
    ),
    RecordKind.IMPORT: RecordKindSpec(
        kind=RecordKind.IMPORT,
        settings_key="importTable",
        collection="import_tracking",
        date_fields=(
            ("etaFinalPod", "ETA Final POD"),
            ("deliveryDate", "Delivery Date"),
        ),
    ),
    RecordKind.DOMESTIC_TRUCKING: RecordKindSpec(
        kind=RecordKind.DOMESTIC_TRUCKING,
        settings_key="domesticTruckingTable",
        collection="domestic_trucking",
        date_fields=(
            ("pickDate", "Pick Date"),
        ),
    ),
}


def get_date_field_label(kind: RecordKind, field_name: str) -> str:
    """Human label of a date field, falling back to the raw field name."""
    for name, label in RECORD_KINDS[kind].date_fields:
        if name == field_name:
            return label
    return field_name


# ====================================================================================
# Monitored Record
# ====================================================================================

_TRUTHY_STRINGS = ("true", "1", "yes", "on")


def parse_archived(value: Any) -> bool:
    """
    Normalize the archived flag.

    Some collections store it as a boolean, others as a string ("true"/"false").
    Missing values mean "not archived".
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _coerce_date_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return ""


@dataclass(frozen=True)
class MonitoredRecord:
    """Snapshot of one record as seen by the reminder engine"""
    id: str
    kind: RecordKind
    customer_label: str = ""
    archived: bool = False
    dates: Mapping[str, str] = field(default_factory=dict)  # field name -> raw date ("" = unset)

    def date_value(self, field_name: str) -> str:
        return self.dates.get(field_name) or ""

    @classmethod
    def from_document(cls, document: Mapping[str, Any], kind: RecordKind) -> "MonitoredRecord":
        """
        Build a snapshot from a record document.

        Args:
            document: Record document ({"id", "customer", "archived", <date fields>...})
            kind: Record kind the document belongs to

        Raises:
            ValueError: document has no usable id
        """
        record_id = document.get("id")
        if record_id is None or str(record_id).strip() == "":
            raise ValueError("record document has no id")

        spec = RECORD_KINDS[kind]
        dates = {name: _coerce_date_string(document.get(name)) for name in spec.field_names}

        customer = document.get("customer")
        return cls(
            id=str(record_id),
            kind=kind,
            customer_label=str(customer) if customer is not None else "",
            archived=parse_archived(document.get("archived")),
            dates=dates,
        )


def records_from_documents(documents: Iterable[Mapping[str, Any]], kind: RecordKind) -> List[MonitoredRecord]:
    """Convert documents to snapshots, skipping malformed ones."""
    records = []
    for document in documents:
        if not isinstance(document, Mapping):
            logger.warning(f"Skipping non-object {kind.value} record")
            continue
        try:
            records.append(MonitoredRecord.from_document(document, kind))
        except ValueError as e:
            logger.warning(f"Skipping {kind.value} record: {e}")
    return records


# ====================================================================================
# Record Sources
# ====================================================================================

class RecordSource(Protocol):
    async def load(self, kind: RecordKind) -> List[MonitoredRecord]:
        """Return the current snapshot of a record kind or raise RecordSourceUnavailableError."""
        ...


class PostgresRecordSource:
    """Loads record snapshots from the freight_records table."""

    def __init__(self, owner_id: Optional[str] = None):
        self.owner_id = owner_id or None

    async def load(self, kind: RecordKind) -> List[MonitoredRecord]:
        spec = RECORD_KINDS[kind]
        try:
            documents = await database.get_collection_records(spec.collection, user_id=self.owner_id)
        except (
            database.DatabaseUnavailableError,
            asyncpg.PostgresError,
            asyncio.TimeoutError,
            OSError,
        ) as e:
            raise RecordSourceUnavailableError(kind.value, str(e)[:100]) from e
        return records_from_documents(documents, kind)


class StaticRecordSource:
    """Serves snapshots supplied by the host (or by tests)."""

    def __init__(self, documents: Optional[Mapping[RecordKind, Iterable[Mapping[str, Any]]]] = None):
        self._documents: Dict[RecordKind, List[Mapping[str, Any]]] = {
            kind: list(docs) for kind, docs in (documents or {}).items()
        }

    async def load(self, kind: RecordKind) -> List[MonitoredRecord]:
        return records_from_documents(self._documents.get(kind, []), kind)
