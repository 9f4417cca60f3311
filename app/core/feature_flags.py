"""
Operational kill switches.

Immutable flags read once from the environment. Flags default to enabled;
a disabled flag means "log + skip", never an exception.

Environment:
- FEATURE_DATE_REMINDERS_ENABLED (default: true): evaluate and send reminders
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureFlags:
    date_reminders_enabled: bool

    def __post_init__(self):
        for field_name, field_value in self.__dict__.items():
            if not isinstance(field_value, bool):
                raise ValueError(f"Feature flag {field_name} must be boolean, got {type(field_value)}")


_feature_flags: Optional[FeatureFlags] = None


def _parse_bool_env(key: str, default: bool = True) -> bool:
    """Boolean environment variable; unrecognised values fall back to default."""
    value = os.getenv(key, "").lower().strip()
    if value in ("true", "1", "yes", "on"):
        return True
    elif value in ("false", "0", "no", "off"):
        return False
    else:
        return default


def get_feature_flags() -> FeatureFlags:
    """Process-wide flags, created on first call."""
    global _feature_flags

    if _feature_flags is None:
        _feature_flags = FeatureFlags(
            date_reminders_enabled=_parse_bool_env("FEATURE_DATE_REMINDERS_ENABLED", default=True),
        )
        logger.info(
            f"[FEATURE_FLAGS] Initialized: date_reminders={_feature_flags.date_reminders_enabled}"
        )

    return _feature_flags


def reset_feature_flags() -> None:
    """Forget the cached flags so the next call re-reads the environment (tests)."""
    global _feature_flags
    _feature_flags = None
