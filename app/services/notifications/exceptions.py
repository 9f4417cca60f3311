"""
Notification Service Domain Exceptions

Failure taxonomy of the date reminder engine. Every failure is caught and
logged where it happens; none of them stops the scheduler loop.

RecordSourceUnavailableError and LedgerPersistenceError belong to the records
and ledger services and are re-exported here so callers find the whole
taxonomy in one place.
"""

from app.services.ledger.exceptions import LedgerPersistenceError, LedgerServiceError
from app.services.records.exceptions import RecordServiceError, RecordSourceUnavailableError


class NotificationServiceError(Exception):
    """Base exception for notification service errors"""
    pass


class ConfigurationMissingError(NotificationServiceError):
    """Raised when no notification settings are stored (nothing to monitor)"""
    pass


class NotifierDeliveryError(NotificationServiceError):
    """Raised when the notifier could not deliver; the dedup key is not recorded"""
    pass


class InvalidLeadTimeError(NotificationServiceError):
    """Raised when a lead-time offset is outside the closed set {3, 2, 1, 0}"""
    pass


REMINDER_ENGINE_ERRORS = (NotificationServiceError, RecordServiceError, LedgerServiceError)

__all__ = [
    "NotificationServiceError",
    "ConfigurationMissingError",
    "RecordServiceError",
    "RecordSourceUnavailableError",
    "LedgerServiceError",
    "LedgerPersistenceError",
    "NotifierDeliveryError",
    "InvalidLeadTimeError",
    "REMINDER_ENGINE_ERRORS",
]
