"""
Date Reminder Notifications

Settings, window evaluation, message building and notifier adapters of the
date reminder engine. The scheduler lives in reminders.py.
"""

from app.services.notifications.exceptions import (
    NotificationServiceError,
    ConfigurationMissingError,
    RecordSourceUnavailableError,
    LedgerPersistenceError,
    NotifierDeliveryError,
    InvalidLeadTimeError,
)
from app.services.notifications.settings import (
    LeadTime,
    AlertConfiguration,
    SettingsSource,
    PostgresSettingsSource,
    StaticSettingsSource,
    seed_settings,
)
from app.services.notifications.service import (
    VALID_OFFSETS,
    parse_date_value,
    is_date_within_days,
    is_due,
    ReminderCandidate,
    iter_due_candidates,
    ReminderMessage,
    build_reminder_message,
)
from app.services.notifications.notifier import (
    Notifier,
    TelegramNotifier,
    LogNotifier,
    CallbackNotifier,
)

__all__ = [
    # Exceptions
    "NotificationServiceError",
    "ConfigurationMissingError",
    "RecordSourceUnavailableError",
    "LedgerPersistenceError",
    "NotifierDeliveryError",
    "InvalidLeadTimeError",
    # Settings
    "LeadTime",
    "AlertConfiguration",
    "SettingsSource",
    "PostgresSettingsSource",
    "StaticSettingsSource",
    "seed_settings",
    # Window evaluation
    "VALID_OFFSETS",
    "parse_date_value",
    "is_date_within_days",
    "is_due",
    "ReminderCandidate",
    "iter_due_candidates",
    "ReminderMessage",
    "build_reminder_message",
    # Notifiers
    "Notifier",
    "TelegramNotifier",
    "LogNotifier",
    "CallbackNotifier",
]
