import os
import sys

# ====================================================================================
# ENVIRONMENT CONFIGURATION: PROD / STAGE / LOCAL isolation through prefixes
# ====================================================================================
# Every variable is read with the environment prefix:
#   - PROD:  PROD_DATABASE_URL, PROD_REMINDER_FIRING_HOUR, PROD_BOT_TOKEN
#   - STAGE: STAGE_DATABASE_URL, STAGE_REMINDER_FIRING_HOUR, STAGE_BOT_TOKEN
#   - LOCAL: LOCAL_DATABASE_URL, LOCAL_REMINDER_FIRING_HOUR, LOCAL_BOT_TOKEN
#
# A STAGE process therefore never picks up PROD credentials by accident.
# ====================================================================================

APP_ENV = os.getenv("APP_ENV", "prod").lower()
if APP_ENV not in ("prod", "stage", "local"):
    print(f"ERROR: Invalid APP_ENV={APP_ENV}. Must be one of: prod, stage, local", file=sys.stderr)
    sys.exit(1)


def env(key: str, default: str = "") -> str:
    """
    Read an environment variable with the environment prefix.

    Args:
        key: Variable name without prefix (e.g. "DATABASE_URL")
        default: Value returned when the variable is not set

    Returns:
        Value of the prefixed variable (e.g. "STAGE_DATABASE_URL")

    Example:
        env("DATABASE_URL") -> "PROD_DATABASE_URL" (APP_ENV=prod)
        env("REMINDER_FIRING_HOUR", default="9") -> "9" when unset
    """
    env_key = f"{APP_ENV.upper()}_{key}"
    return os.getenv(env_key, default)


def _int_env(key: str, default: int, minimum: int = None, maximum: int = None) -> int:
    raw = env(key, default=str(default))
    try:
        value = int(raw)
    except ValueError:
        print(f"ERROR: {APP_ENV.upper()}_{key} must be a number, got: {raw}", file=sys.stderr)
        sys.exit(1)
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        print(
            f"ERROR: {APP_ENV.upper()}_{key}={value} is out of range [{minimum}, {maximum}]",
            file=sys.stderr,
        )
        sys.exit(1)
    return value


# Unprefixed secrets are forbidden so that environments cannot be mixed up
_direct_usage_vars = ["BOT_TOKEN", "REMINDER_CHAT_ID"]
for var in _direct_usage_vars:
    if os.getenv(var):
        print(f"ERROR: Direct usage of {var} is FORBIDDEN!", file=sys.stderr)
        print(f"ERROR: Use {APP_ENV.upper()}_{var} instead (via env('{var}'))", file=sys.stderr)
        sys.exit(1)

# ====================================================================================
# STORAGE
# ====================================================================================

# Document database holding settings, record snapshots and the Postgres ledger.
# Required by main.py; library users may inject their own collaborators instead.
DATABASE_URL = env("DATABASE_URL")

# Optional Redis, used when LEDGER_BACKEND=redis
REDIS_URL = env("REDIS_URL", default="")

# ====================================================================================
# REMINDER SCHEDULE
# ====================================================================================

# Local wall-clock hour at which reminders are evaluated (0-23)
REMINDER_FIRING_HOUR = _int_env("REMINDER_FIRING_HOUR", 9, minimum=0, maximum=23)

# Period between scheduler ticks
REMINDER_CHECK_INTERVAL_SECONDS = _int_env("REMINDER_CHECK_INTERVAL_SECONDS", 60 * 60, minimum=1)

# IANA timezone name for "today" and the firing hour; empty = host local time
REMINDER_TIMEZONE = env("REMINDER_TIMEZONE", default="")

# Only scan records owned by this user id (empty = all records)
REMINDER_OWNER_ID = env("REMINDER_OWNER_ID", default="")

# ====================================================================================
# SENT-NOTIFICATION LEDGER
# ====================================================================================

LEDGER_RETENTION_DAYS = _int_env("LEDGER_RETENTION_DAYS", 30, minimum=1)

LEDGER_BACKEND = env("LEDGER_BACKEND", default="postgres").lower()
if LEDGER_BACKEND not in ("postgres", "redis"):
    print(f"ERROR: Invalid LEDGER_BACKEND={LEDGER_BACKEND}. Must be one of: postgres, redis", file=sys.stderr)
    sys.exit(1)

LEDGER_REDIS_KEY = env("LEDGER_REDIS_KEY", default=f"freight:{APP_ENV}:sent_notifications")

# ====================================================================================
# SETTINGS
# ====================================================================================

# First-run hosts: store the all-enabled settings document when none exists.
# Off by default; an absent document means nothing is monitored.
SEED_DEFAULT_SETTINGS = env("SEED_DEFAULT_SETTINGS", default="false").lower() == "true"

# ====================================================================================
# DELIVERY
# ====================================================================================

# Telegram delivery is optional; without it reminders go to the log notifier
BOT_TOKEN = env("BOT_TOKEN")
REMINDER_CHAT_ID = env("REMINDER_CHAT_ID")
TELEGRAM_ENABLED = bool(BOT_TOKEN and REMINDER_CHAT_ID)

# ====================================================================================
# HEALTH SERVER
# ====================================================================================

HEALTH_SERVER_ENABLED = env("HEALTH_SERVER_ENABLED", default="true").lower() == "true"
HEALTH_SERVER_PORT = int(os.getenv("PORT") or env("HEALTH_SERVER_PORT") or "8080")

LOG_LEVEL = env("LOG_LEVEL", default="INFO").upper()
