"""
HTTP Health Check Server

Exposes /health for monitoring. The endpoint never touches the database or
Redis; it only reads readiness flags and the scheduler's last cycle.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiohttp import web

import database
import redis_client

logger = logging.getLogger(__name__)

SCHEDULER_APP_KEY = web.AppKey("scheduler", object)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_health_payload(scheduler=None) -> Dict[str, Any]:
    """
    Health snapshot.

    Status rules:
        - "ok": database ready and the scheduler loop is running
        - "degraded": anything else (the process still serves /health)
    """
    db_ready = database.DB_READY
    redis_ready = redis_client.REDIS_READY

    scheduler_state: Dict[str, Any] = {"running": False, "scanning": False, "last_cycle": None}
    if scheduler is not None:
        last_cycle = scheduler.last_cycle
        scheduler_state = {
            "running": scheduler.is_running,
            "scanning": scheduler.is_scanning,
            "last_cycle": last_cycle.as_dict() if last_cycle is not None else None,
        }

    status = "ok" if db_ready and scheduler_state["running"] else "degraded"
    return {
        "status": status,
        "db_ready": db_ready,
        "redis_ready": redis_ready,
        "scheduler": scheduler_state,
        "timestamp": _utc_timestamp(),
    }


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint handler.

    Always HTTP 200; monitoring tells "ok" from "degraded" by the status field.
    """
    try:
        payload = build_health_payload(request.app.get(SCHEDULER_APP_KEY))
        return web.json_response(payload, status=200)
    except Exception as e:
        logger.exception(f"Error in health endpoint: {e}")
        return web.json_response(
            {
                "status": "degraded",
                "db_ready": False,
                "redis_ready": False,
                "scheduler": None,
                "timestamp": _utc_timestamp(),
                "error": "Health check error",
            },
            status=200,
        )


def create_health_app(scheduler=None) -> web.Application:
    app = web.Application()
    app[SCHEDULER_APP_KEY] = scheduler
    app.router.add_get("/health", health_handler)

    async def root_handler(request: web.Request) -> web.Response:
        return web.json_response({"service": "freight-date-reminders", "health": "/health"})

    app.router.add_get("/", root_handler)
    return app


async def start_health_server(host: str = "0.0.0.0", port: int = 8080, scheduler=None) -> web.AppRunner:
    """
    Start the health HTTP server.

    Returns:
        AppRunner; call cleanup() on it to stop the server
    """
    runner = web.AppRunner(create_health_app(scheduler))
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on http://{host}:{port}/health")
    return runner


async def health_server_task(host: str = "0.0.0.0", port: int = 8080, scheduler: Optional[Any] = None):
    """Background task serving /health until cancelled."""
    runner = None
    try:
        runner = await start_health_server(host, port, scheduler)
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        logger.info("Health server task cancelled")
        raise
    finally:
        if runner is not None:
            try:
                await runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.error(f"Error stopping health server: {e}")
