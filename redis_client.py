"""
Redis connection for the ledger backend.

Only used when LEDGER_BACKEND=redis. One client per process; the ledger list
lives under config.LEDGER_REDIS_KEY. REDIS_READY mirrors the last PING result
and is reported by /health.
"""
import logging
from typing import Optional

import redis.asyncio as redis

import config
from app.core.structured_logger import log_event

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None
REDIS_READY: bool = False


def _build_client(url: str) -> redis.Redis:
    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
        max_connections=5,
    )


async def get_redis_client() -> Optional[redis.Redis]:
    """
    Shared client, created on first call.

    Returns:
        None when REDIS_URL is not configured

    Raises:
        RuntimeError: REDIS_URL is set but unusable
    """
    global _client, REDIS_READY

    if not config.REDIS_URL:
        return None
    if _client is not None:
        return _client

    try:
        _client = _build_client(config.REDIS_URL)
    except ValueError as e:
        REDIS_READY = False
        raise RuntimeError(f"Invalid {config.APP_ENV.upper()}_REDIS_URL: {e}") from e

    logger.info("Redis client created")
    return _client


async def check_redis_connection() -> bool:
    """PING Redis and update REDIS_READY. Never raises."""
    global REDIS_READY

    try:
        client = await get_redis_client()
        REDIS_READY = bool(client is not None and await client.ping())
    except Exception as e:
        REDIS_READY = False
        log_event(
            logger,
            component="infra",
            operation="redis_health_check",
            outcome="failed",
            reason=str(e)[:100],
            level="warning",
        )
        return False

    log_event(
        logger,
        component="infra",
        operation="redis_health_check",
        outcome="success" if REDIS_READY else "failed",
        level="info" if REDIS_READY else "warning",
    )
    return REDIS_READY


async def close_redis_client() -> None:
    """Close the shared client. Safe to call when none was created."""
    global _client, REDIS_READY

    client, _client = _client, None
    REDIS_READY = False
    if client is None:
        return
    try:
        await client.aclose()
        logger.info("Redis client closed")
    except Exception as e:
        logger.error(f"Error closing Redis client: {e}")
