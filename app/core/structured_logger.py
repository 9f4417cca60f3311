"""
Structured lifecycle events (scheduler start/stop, ledger compaction, health checks).

Every event carries component / operation / outcome in ``extra`` and renders
them into the message, so plain-text handlers show the same information:

    scheduler scheduler_start outcome=success firing_hour=9

Extra keyword fields are appended as key=value pairs; None values are skipped.
The current iteration's correlation id is attached when not given explicitly.
Record contents and tokens do not belong here.
"""
import logging
from typing import Any, Optional

from app.utils.logging_helpers import get_correlation_id

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def log_event(
    logger: logging.Logger,
    *,
    component: str,
    operation: str,
    outcome: str,
    reason: Optional[str] = None,
    correlation_id: Optional[str] = None,
    level: str = "info",
    message: Optional[str] = None,
    **fields: Any,
) -> None:
    fields = {k: v for k, v in fields.items() if v is not None}
    correlation_id = correlation_id or get_correlation_id()

    extra = {"component": component, "operation": operation, "outcome": outcome, **fields}
    if correlation_id:
        extra["correlation_id"] = correlation_id
    if reason is not None:
        extra["reason"] = reason

    if message is None:
        parts = [f"{component} {operation} outcome={outcome}"]
        parts.extend(f"{key}={value}" for key, value in fields.items())
        if reason is not None:
            parts.append(f"reason={reason}")
        message = " ".join(parts)

    logger.log(_LEVELS.get(level.lower(), logging.INFO), message, extra=extra)
