"""
Structured logging helpers for the reminder worker.

Logging contract (emitted as one JSON object per line):
- correlation_id: unique per scheduler iteration
- component / operation: "worker" / "<worker>_iteration"
- outcome: success | degraded | failed | skipped

Failure taxonomy:
- infra_error: database, Redis, network, timeouts
- dependency_error: notifier / delivery channel
- domain_error: reminder engine errors (settings, ledger, lead times)
- unexpected_error: anything else (bugs)
"""

import asyncio
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

import asyncpg
from redis import exceptions as redis_exceptions

from app.services.notifications.exceptions import REMINDER_ENGINE_ERRORS, NotifierDeliveryError

_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

logger = logging.getLogger(__name__)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def log_worker_iteration_start(
    worker_name: str,
    iteration_number: Optional[int] = None,
    **kwargs
) -> str:
    """
    Log worker iteration start and bind a fresh correlation id to the context.

    Args:
        worker_name: Name of the worker (e.g., "date_reminders")
        iteration_number: Iteration counter (optional)
        **kwargs: Additional context to log

    Returns:
        Correlation ID for this iteration
    """
    correlation_id = generate_correlation_id()
    set_correlation_id(correlation_id)

    log_data = {
        "event": "ITERATION_START",
        "worker": worker_name,
        "correlation_id": correlation_id,
        "component": "worker",
        "operation": f"{worker_name}_iteration",
        "timestamp": _utc_timestamp(),
    }
    if iteration_number is not None:
        log_data["iteration_number"] = iteration_number
    if kwargs:
        log_data.update(kwargs)

    log_data["level"] = "INFO"
    logger.info(json.dumps(log_data, default=str))
    return correlation_id


def log_worker_iteration_end(
    worker_name: str,
    outcome: str,  # "success" | "degraded" | "failed" | "skipped"
    items_processed: Optional[int] = None,
    error_type: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> None:
    """
    Log worker iteration end. Level follows the outcome:
    failed → ERROR, degraded → WARNING, otherwise INFO.
    """
    log_data = {
        "event": "ITERATION_END",
        "worker": worker_name,
        "correlation_id": get_correlation_id(),
        "component": "worker",
        "operation": f"{worker_name}_iteration",
        "outcome": outcome,
        "timestamp": _utc_timestamp(),
    }
    if items_processed is not None:
        log_data["items_processed"] = items_processed
    if error_type:
        log_data["error_type"] = error_type
    if duration_ms is not None:
        log_data["duration_ms"] = duration_ms
    if kwargs:
        log_data.update(kwargs)

    if outcome == "failed":
        log_data["level"] = "ERROR"
        logger.error(json.dumps(log_data, default=str))
    elif outcome == "degraded":
        log_data["level"] = "WARNING"
        logger.warning(json.dumps(log_data, default=str))
    else:
        log_data["level"] = "INFO"
        logger.info(json.dumps(log_data, default=str))


def classify_error(exception: BaseException) -> str:
    """
    Classify an exception into the failure taxonomy.

    Returns:
        "infra_error" | "dependency_error" | "domain_error" | "unexpected_error"
    """
    if isinstance(exception, NotifierDeliveryError):
        return "dependency_error"

    if isinstance(exception, REMINDER_ENGINE_ERRORS):
        cause = exception.__cause__
        if cause is not None and classify_error(cause) == "infra_error":
            return "infra_error"
        return "domain_error"

    if isinstance(exception, (
        asyncpg.PostgresError,
        redis_exceptions.ConnectionError,
        redis_exceptions.TimeoutError,
        asyncio.TimeoutError,
        ConnectionError,
        OSError,
    )):
        return "infra_error"

    error_str = str(exception).lower()
    if any(keyword in error_str for keyword in ["telegram api", "http", "api"]):
        return "dependency_error"

    return "unexpected_error"
