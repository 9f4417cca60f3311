import asyncio
import logging
import signal
import sys

import config

# Configure logging FIRST (before any other imports that may log)
# Routes INFO/WARNING → stdout, ERROR/CRITICAL → stderr
from app.core.logging_config import setup_logging
setup_logging(config.LOG_LEVEL)

from aiogram import Bot

import database
import health_server
import redis_client
from app.core.feature_flags import get_feature_flags
from app.core.structured_logger import log_event
from app.services.ledger import PostgresLedgerStore, RedisLedgerStore, SentNotificationLedger
from app.services.notifications import (
    LogNotifier,
    PostgresSettingsSource,
    TelegramNotifier,
    seed_settings,
)
from app.services.records import PostgresRecordSource
from reminders import DateReminderScheduler

# ====================================================================================
# LOGGING CONTRACT
# ====================================================================================
# Standard log fields:
# - component        (scheduler / worker / ledger / infra / shutdown)
# - operation        (what is happening)
# - correlation_id   (scheduler iteration id)
# - outcome          (success | skipped | degraded | failed)
# - duration_ms      (when applicable)
# - reason           (short explanation, never record contents)
#
# Workers log ITERATION_START / ITERATION_END; no per-record spam at INFO.
# ====================================================================================

logger = logging.getLogger(__name__)

DB_RETRY_INTERVAL_SECONDS = 30


async def build_ledger() -> SentNotificationLedger:
    """
    Ledger backed by the configured store.

    Raises:
        RuntimeError: LEDGER_BACKEND=redis but Redis is not configured
    """
    if config.LEDGER_BACKEND == "redis":
        client = await redis_client.get_redis_client()
        if client is None:
            raise RuntimeError(f"{config.APP_ENV.upper()}_REDIS_URL is required for LEDGER_BACKEND=redis")
        await redis_client.check_redis_connection()
        store = RedisLedgerStore(client, config.LEDGER_REDIS_KEY)
    else:
        store = PostgresLedgerStore()
    logger.info(f"Ledger backend: {config.LEDGER_BACKEND}")
    return SentNotificationLedger(store)


def build_notifier(bot=None):
    if bot is not None:
        logger.info("Reminders are delivered to Telegram")
        return TelegramNotifier(bot, config.REMINDER_CHAT_ID)
    logger.warning("Telegram delivery not configured, reminders go to the log")
    return LogNotifier()


async def seed_default_settings() -> bool:
    """
    Store the default settings document on first run when SEED_DEFAULT_SETTINGS=true.

    Returns:
        True if a document was written
    """
    if not config.SEED_DEFAULT_SETTINGS or not database.DB_READY:
        return False
    try:
        seeded = await seed_settings()
    except Exception as e:
        logger.warning(f"Seeding default settings failed: {type(e).__name__}: {e}")
        return False
    if seeded:
        log_event(logger, component="startup", operation="seed_settings", outcome="success")
    return seeded


async def retry_db_init():
    """
    Re-run database initialisation every DB_RETRY_INTERVAL_SECONDS until it succeeds.

    The scheduler keeps ticking meanwhile; its cycles fail with settings_unavailable
    until DB_READY flips.
    """
    logger.info(f"Starting DB initialization retry task (every {DB_RETRY_INTERVAL_SECONDS}s)")
    while not database.DB_READY:
        await asyncio.sleep(DB_RETRY_INTERVAL_SECONDS)
        try:
            if await database.init_db():
                logger.info("DATABASE RECOVERY SUCCESSFUL")
                await seed_default_settings()
                break
            logger.warning("Database initialization retry failed, will retry later")
        except Exception as e:
            logger.warning(f"Database initialization retry error: {type(e).__name__}: {e}")
    logger.info("DB retry task finished")


async def main():
    if not config.DATABASE_URL:
        print(f"ERROR: {config.APP_ENV.upper()}_DATABASE_URL is not set", file=sys.stderr)
        sys.exit(1)

    log_event(
        logger,
        component="startup",
        operation="startup",
        outcome="success",
        reason=f"env={config.APP_ENV}",
    )
    get_feature_flags()

    background_tasks = []
    bot = Bot(token=config.BOT_TOKEN) if config.TELEGRAM_ENABLED else None

    if not await database.init_db():
        logger.error("Database not ready at startup, running degraded")
        background_tasks.append(asyncio.create_task(retry_db_init(), name="db_retry"))
    else:
        await seed_default_settings()

    ledger = await build_ledger()
    scheduler = DateReminderScheduler(
        settings_source=PostgresSettingsSource(),
        record_source=PostgresRecordSource(config.REMINDER_OWNER_ID or None),
        ledger=ledger,
        notifier=build_notifier(bot),
    )

    if config.HEALTH_SERVER_ENABLED:
        background_tasks.append(asyncio.create_task(
            health_server.health_server_task(port=config.HEALTH_SERVER_PORT, scheduler=scheduler),
            name="health_server",
        ))

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    scheduler.start()
    try:
        await shutdown_event.wait()
    finally:
        log_event(logger, component="shutdown", operation="shutdown_start", outcome="success")

        # Lets an in-flight scan finish before closing its collaborators
        scheduler.stop()
        await scheduler.wait_closed()

        for task in background_tasks:
            if not task.done():
                task.cancel()
        for task in background_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Error during shutdown of task {task.get_name()}: {e}")

        try:
            await database.close_pool()
        except Exception as e:
            logger.error(f"Error closing database pool: {e}")

        await redis_client.close_redis_client()

        if bot is not None:
            try:
                await bot.session.close()
                logger.info("Bot session closed")
            except Exception as e:
                logger.debug(f"Error closing bot session: {e}")

        log_event(logger, component="shutdown", operation="shutdown_completed", outcome="success")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Reminder service stopped")
