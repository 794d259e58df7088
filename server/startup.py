from __future__ import annotations

import asyncio
import os
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from loguru import logger
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import StreamSettings, load_config, set_config
from core.stream_manager import StreamManager
from logging_config import configure_from
from modules.hls.auto_monitor import AutoMonitor, config_camera_source
from modules.hls.reporting import RedisStatusReporter
from utils.redis import get_sync_client

logger = logger.bind(module="startup")


async def handle_unexpected_error(request: Request, exc: Exception):
    """Catch-all handler that logs the error and hides its details."""
    if isinstance(exc, StarletteHTTPException):
        return await http_exception_handler(request, exc)
    logger.exception("Unhandled application error: {}", exc)
    return JSONResponse({"success": False, "error": "internal_error"}, status_code=500)


def silent_exception_handler(loop: asyncio.AbstractEventLoop, context: dict):
    exception = context.get("exception")
    if isinstance(exception, ConnectionResetError):
        logger.warning("Suppressed harmless ConnectionResetError")
        return
    loop.default_exception_handler(context)


def _make_reporter(cfg: dict):
    """Return a Redis status reporter, or ``None`` when Redis is unavailable."""
    url = cfg.get("redis_url")
    if not url:
        logger.warning("redis_url not configured; camera status will not be published")
        return None
    try:
        return RedisStatusReporter(get_sync_client(url))
    except (RedisError, OSError) as e:
        logger.error("Status reporting disabled: {}", e)
        return None


def init_app(app: FastAPI, config_path: str = "config.json") -> dict[str, Any]:
    """Load configuration and build the stream manager on ``app.state``."""
    cfg = load_config(config_path)
    set_config(cfg)
    configure_from(cfg)

    settings = StreamSettings.from_config(cfg)
    settings.streams_dir.mkdir(parents=True, exist_ok=True)
    reporter = _make_reporter(cfg)
    app.state.config = cfg
    app.state.reporter = reporter
    app.state.stream_manager = StreamManager(settings, reporter=reporter)
    return cfg


def start_background_workers(app: FastAPI, cfg: dict) -> list[asyncio.Task]:
    """Start the health monitor and, when enabled, the auto-monitor."""
    manager: StreamManager = app.state.stream_manager
    settings = manager.settings
    tasks = [asyncio.create_task(manager.health.run(), name="health-monitor")]
    if cfg.get("auto_monitor", True):
        monitor = AutoMonitor(
            manager,
            config_camera_source(cfg),
            app.state.reporter,
            initial_delay=settings.auto_monitor_initial_delay,
            interval=settings.auto_monitor_interval,
        )
        app.state.auto_monitor = monitor
        tasks.append(asyncio.create_task(monitor.run(), name="auto-monitor"))
    else:
        logger.info("auto-monitor disabled")
    return tasks


async def stop_all(app: FastAPI) -> None:
    """Cancel background loops and stop every stream."""
    worker_tasks = [t for t in getattr(app.state, "worker_tasks", []) if t]
    logger.info("Cancelling background tasks")
    for task in worker_tasks:
        task.cancel()
    for task in worker_tasks:
        try:
            await task
            logger.info("Task {} finished", task.get_name())
        except asyncio.CancelledError:
            logger.info("Task {} cancelled", task.get_name())
        except (RuntimeError, OSError) as e:
            logger.exception("Task {} error: {}", task.get_name(), e)

    manager = getattr(app.state, "stream_manager", None)
    if manager is not None:
        await manager.close()
    logger.info("All streams stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(silent_exception_handler)

    start_time = time.time()
    cfg = init_app(app, config_path=os.getenv("CONFIG_PATH", "config.json"))
    app.state.worker_tasks = start_background_workers(app, cfg)
    logger.info("Startup complete in {:.2f}s", time.time() - start_time)

    try:
        yield
    finally:
        await stop_all(app)
