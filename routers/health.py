"""Health check endpoints for liveness and readiness."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

router = APIRouter()


def _loops_running(app) -> bool:
    """Return True while every background loop started by the lifespan is alive."""
    tasks = getattr(app.state, "worker_tasks", None)
    if tasks is None:
        return False
    return all(not t.done() for t in tasks)


@router.get("/health/live")
async def live() -> dict:
    """Liveness probe that always succeeds."""
    return {"ok": True, "message": "live", "data": None}


@router.get("/health/ready")
async def ready(request: Request):
    """Readiness probe: the manager exists and its loops are running."""
    try:
        app = request.app
        manager = getattr(app.state, "stream_manager", None)
        if manager is not None and _loops_running(app):
            data = {"activeStreams": len(manager.registry)}
            return {"ok": True, "message": "ready", "data": data}
        return JSONResponse(
            status_code=503,
            content={"ok": False, "message": "not ready", "data": None},
        )
    except Exception:
        logger.exception("ready check failed")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "message": "internal error", "data": None},
        )


@router.get("/health")
async def health() -> dict:
    """Simple health check endpoint."""
    return {"ok": True, "message": "healthy", "data": None}
