import asyncpg
import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
import config
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

# ====================================================================================
# SAFE STARTUP GUARD: global database readiness flag
# ====================================================================================
# Reflects whether the database is initialised and safe to use.
# When False the reminder engine skips record/settings reads (degraded mode).
# ====================================================================================
DB_READY: bool = False

# Document keys in app_documents
SETTINGS_DOCUMENT_KEY = "notificationSettings"
LEDGER_DOCUMENT_KEY = "sentNotifications"


class DatabaseUnavailableError(RuntimeError):
    """Raised when a read or write is attempted while the database is not ready."""
    pass


def _to_db_utc(dt: datetime) -> datetime:
    """
    Convert aware UTC datetime to naive UTC for TIMESTAMP columns.
    Must raise if dt is not timezone-aware UTC.
    """
    assert dt.tzinfo == timezone.utc, f"Expected UTC, got tzinfo={dt.tzinfo}"
    return dt.replace(tzinfo=None)


def _decode_jsonb(value: Any) -> Any:
    """asyncpg returns JSONB as text unless a codec is registered."""
    if isinstance(value, str):
        return json.loads(value)
    return value


# ====================================================================================
# DB POOL CONFIG (ENV-overridable)
# ====================================================================================
def _get_pool_config() -> dict:
    """Build asyncpg.create_pool kwargs. Single source of truth for all pool creation."""
    return {
        "min_size": int(os.getenv("DB_POOL_MIN_SIZE", "1")),
        "max_size": int(os.getenv("DB_POOL_MAX_SIZE", "5")),
        "max_inactive_connection_lifetime": 300,
        "timeout": int(os.getenv("DB_POOL_ACQUIRE_TIMEOUT", "10")),
        "command_timeout": int(os.getenv("DB_POOL_COMMAND_TIMEOUT", "30")),
    }


_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """
    Return the connection pool, creating it on first use.

    Pool creation is retried once on transient asyncpg errors.

    Raises:
        DatabaseUnavailableError: DATABASE_URL is not configured
    """
    global _pool
    if not config.DATABASE_URL:
        raise DatabaseUnavailableError(f"{config.APP_ENV.upper()}_DATABASE_URL is not configured")
    if _pool is None:
        pool_config = _get_pool_config()
        _pool = await retry_async(
            lambda: asyncpg.create_pool(config.DATABASE_URL, **pool_config),
            retries=1,
            base_delay=0.5,
            max_delay=5.0,
            retry_on=(asyncpg.PostgresError, OSError),
        )
        logger.info(
            "DB_POOL_CONFIG min=%s max=%s acquire_timeout=%s command_timeout=%s",
            pool_config["min_size"], pool_config["max_size"],
            pool_config["timeout"], pool_config["command_timeout"],
        )
    return _pool


async def close_pool():
    """Close the connection pool. Safe to call multiple times."""
    global _pool, DB_READY
    if _pool:
        await _pool.close()
        _pool = None
        DB_READY = False
        logger.info("Database connection pool closed")


async def _get_ready_pool() -> asyncpg.Pool:
    if not DB_READY:
        raise DatabaseUnavailableError("Database not ready (degraded mode)")
    return await get_pool()


async def init_db() -> bool:
    """
    Initialise the database: connectivity probe, pool and tables.

    Idempotent: returns immediately when DB_READY is already set.

    Returns:
        True if initialisation succeeded, False otherwise
    """
    global DB_READY, _pool

    if DB_READY:
        logger.info("Database already initialized (DB_READY=True), skipping init")
        return True

    if not config.DATABASE_URL:
        logger.error("DATABASE_URL not configured")
        return False

    try:
        conn = await asyncpg.connect(config.DATABASE_URL)
        await conn.execute("SELECT 1")
        await conn.close()
        logger.info("DB connectivity probe successful")
    except Exception as e:
        logger.error(f"DB connectivity probe failed: {e}")
        return False

    try:
        pool = await get_pool()
    except Exception as e:
        logger.error(f"Failed to create database pool: {e}")
        return False

    # Yield before touching the pool so other startup tasks can progress
    await asyncio.sleep(0)

    async with pool.acquire() as conn:
        # Singleton JSON documents: notification settings and the ledger
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS app_documents (
                key TEXT PRIMARY KEY,
                data JSONB NOT NULL,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Record snapshots per collection (export_tracking, import_tracking, domestic_trucking)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS freight_records (
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                user_id TEXT,
                data JSONB NOT NULL,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (collection, id)
            )
        """)
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_freight_records_user ON freight_records (collection, user_id)"
        )

    DB_READY = True
    logger.info("Database initialized (DB_READY=True)")
    return True


# ====================================================================================
# DOCUMENTS
# ====================================================================================

async def get_document(key: str) -> Optional[Any]:
    """
    Load a JSON document by key.

    Returns:
        Decoded document, or None when no document is stored under the key

    Raises:
        DatabaseUnavailableError: database not ready
        asyncpg.PostgresError: query failed after retries
    """
    pool = await _get_ready_pool()

    async def _fetch():
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT data FROM app_documents WHERE key = $1", key)

    value = await retry_async(_fetch)
    if value is None:
        return None
    return _decode_jsonb(value)


async def put_document(key: str, data: Any) -> None:
    """
    Store a JSON document, replacing any previous version.

    Raises:
        DatabaseUnavailableError: database not ready
        asyncpg.PostgresError: write failed
    """
    pool = await _get_ready_pool()
    now = _to_db_utc(datetime.now(timezone.utc))
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO app_documents (key, data, updated_at)
            VALUES ($1, $2::jsonb, $3)
            ON CONFLICT (key) DO UPDATE SET data = EXCLUDED.data, updated_at = EXCLUDED.updated_at
            """,
            key, json.dumps(data), now,
        )


async def get_notification_settings() -> Optional[Dict[str, Any]]:
    """Load the notification settings document (None when never saved)."""
    document = await get_document(SETTINGS_DOCUMENT_KEY)
    if document is not None and not isinstance(document, dict):
        logger.warning("Notification settings document is not an object, ignoring")
        return None
    return document


# ====================================================================================
# RECORDS
# ====================================================================================

async def get_collection_records(collection: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Load the current snapshot of a record collection.

    The row id is injected into each document as "id" when the document lacks one.

    Args:
        collection: Collection name (e.g. "export_tracking")
        user_id: Restrict to one owner (None = all owners)

    Raises:
        DatabaseUnavailableError: database not ready
        asyncpg.PostgresError: query failed after retries
    """
    pool = await _get_ready_pool()

    async def _fetch():
        async with pool.acquire() as conn:
            if user_id:
                return await conn.fetch(
                    "SELECT id, data FROM freight_records WHERE collection = $1 AND user_id = $2 ORDER BY id",
                    collection, user_id,
                )
            return await conn.fetch(
                "SELECT id, data FROM freight_records WHERE collection = $1 ORDER BY id",
                collection,
            )

    rows = await retry_async(_fetch)
    records = []
    for row in rows:
        data = _decode_jsonb(row["data"])
        if not isinstance(data, dict):
            logger.warning(f"Skipping non-object record {collection}/{row['id']}")
            continue
        document = dict(data)
        document.setdefault("id", row["id"])
        records.append(document)
    return records
