"""
Alert Configuration

Typed view of the notification settings document. Defaults are applied once,
when the document is parsed; read sites only ever see a complete configuration.

Document shape:
    {
        "exportTable": {"dropDate": true, "returnDate": true, "docCutoffDate": true},
        "importTable": {"etaFinalPod": true, "deliveryDate": true},
        "domesticTruckingTable": {"pickDate": true},
        "notificationTiming": {"threeDays": true, "twoDays": true, "oneDay": true, "dayOf": true}
    }
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

import database
from app.services.notifications.exceptions import ConfigurationMissingError
from app.services.records.service import RECORD_KINDS, RecordKind

logger = logging.getLogger(__name__)


class LeadTime(Enum):
    """Closed set of lead-time offsets (days before the target date)"""
    THREE_DAYS = 3
    TWO_DAYS = 2
    ONE_DAY = 1
    DAY_OF = 0

    @property
    def days(self) -> int:
        return self.value

    @property
    def settings_key(self) -> str:
        return _LEAD_TIME_KEYS[self]

    @property
    def label(self) -> str:
        return _LEAD_TIME_LABELS[self]


_LEAD_TIME_KEYS = {
    LeadTime.THREE_DAYS: "threeDays",
    LeadTime.TWO_DAYS: "twoDays",
    LeadTime.ONE_DAY: "oneDay",
    LeadTime.DAY_OF: "dayOf",
}

_LEAD_TIME_LABELS = {
    LeadTime.THREE_DAYS: "3 days",
    LeadTime.TWO_DAYS: "2 days",
    LeadTime.ONE_DAY: "1 day",
    LeadTime.DAY_OF: "today",
}

TIMING_SECTION_KEY = "notificationTiming"


def _parse_flag(value: Any, default: bool = True) -> bool:
    """Enabled flag from the settings document; unset or unrecognised values keep the default."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1", "yes", "on"):
            return True
        if normalized in ("false", "0", "no", "off"):
            return False
        return default
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _section(document: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = document.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        logger.warning(f"Notification settings section '{key}' is not an object, using defaults")
        return {}
    return value


@dataclass(frozen=True)
class AlertConfiguration:
    """
    Which date fields are monitored per record kind and which lead times are enabled.

    monitored_fields keeps the declaration order of RECORD_KINDS;
    lead_times is ordered from the longest to the shortest offset.
    """
    monitored_fields: Mapping[RecordKind, Tuple[str, ...]] = field(default_factory=dict)
    lead_times: Tuple[LeadTime, ...] = ()

    def fields_for(self, kind: RecordKind) -> Tuple[str, ...]:
        return tuple(self.monitored_fields.get(kind, ()))

    def has_monitoring(self) -> bool:
        return bool(self.lead_times) and any(self.monitored_fields.get(kind) for kind in RecordKind)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "AlertConfiguration":
        """Parse a settings document; missing flags are treated as enabled."""
        monitored: Dict[RecordKind, Tuple[str, ...]] = {}
        for kind, spec in RECORD_KINDS.items():
            section = _section(document, spec.settings_key)
            monitored[kind] = tuple(
                name for name in spec.field_names if _parse_flag(section.get(name))
            )

        timing = _section(document, TIMING_SECTION_KEY)
        lead_times = tuple(lt for lt in LeadTime if _parse_flag(timing.get(lt.settings_key)))
        return cls(monitored_fields=monitored, lead_times=lead_times)

    @classmethod
    def defaults(cls) -> "AlertConfiguration":
        return cls.from_document({})

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {}
        for kind, spec in RECORD_KINDS.items():
            enabled = set(self.fields_for(kind))
            document[spec.settings_key] = {name: name in enabled for name in spec.field_names}
        document[TIMING_SECTION_KEY] = {lt.settings_key: lt in self.lead_times for lt in LeadTime}
        return document


# ====================================================================================
# Settings Sources
# ====================================================================================

class SettingsSource(Protocol):
    async def load(self) -> AlertConfiguration:
        """Return the current configuration or raise ConfigurationMissingError."""
        ...


class PostgresSettingsSource:
    """Reads the notificationSettings document from app_documents on every call."""

    async def load(self) -> AlertConfiguration:
        document = await database.get_notification_settings()
        if document is None:
            raise ConfigurationMissingError("Notification settings are not configured")
        return AlertConfiguration.from_document(document)


class StaticSettingsSource:
    """In-memory settings document, for hosts that hold settings themselves and for tests."""

    def __init__(self, document: Optional[Mapping[str, Any]] = None):
        self.document = document

    async def load(self) -> AlertConfiguration:
        if self.document is None:
            raise ConfigurationMissingError("Notification settings are not configured")
        return AlertConfiguration.from_document(self.document)


async def seed_settings() -> bool:
    """
    Store the default settings document when none exists yet.

    Returns:
        True if the defaults were written, False if a document was already present
    """
    if await database.get_notification_settings() is not None:
        return False
    await database.put_document(database.SETTINGS_DOCUMENT_KEY, AlertConfiguration.defaults().to_document())
    logger.info("Default notification settings stored")
    return True
