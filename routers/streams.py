"""HTTP endpoints driving the stream manager."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from core.errors import StreamError, to_response
from core.stream_manager import StreamManager
from schemas.stream import (
    QualityChangeRequest,
    RestartStreamRequest,
    StartStreamRequest,
    StopStreamRequest,
)
from utils.url import mask_credentials

router = APIRouter()


def get_stream_manager(request: Request) -> StreamManager:
    """Return the manager created by the application lifespan."""
    return request.app.state.stream_manager


def _error(exc: Exception) -> JSONResponse:
    status, payload = to_response(exc)
    if status >= 500:
        logger.exception("stream request failed: {}", exc)
    return JSONResponse(status_code=status, content=payload)


@router.post("/api/streams/start")
async def start_stream(
    req: StartStreamRequest, manager: StreamManager = Depends(get_stream_manager)
):
    logger.info("[{}] start requested for {}", req.camera_id, mask_credentials(req.input_url))
    try:
        result = await manager.start_stream(req.camera_id, req.input_url, req.quality)
    except StreamError as exc:
        return _error(exc)
    if not result.success:
        return JSONResponse(status_code=502, content=result.to_dict())
    return result.to_dict()


@router.post("/api/streams/stop")
async def stop_stream(req: StopStreamRequest, manager: StreamManager = Depends(get_stream_manager)):
    try:
        return await manager.stop_stream(req.camera_id)
    except StreamError as exc:
        return _error(exc)


@router.get("/api/streams/active")
async def active_streams(manager: StreamManager = Depends(get_stream_manager)):
    streams = manager.list_streams()
    return {"success": True, "count": len(streams), "streams": streams}


@router.get("/api/streams/qualities")
async def qualities(manager: StreamManager = Depends(get_stream_manager)):
    return {"success": True, "qualities": manager.available_qualities()}


@router.get("/api/streams/{camera_id}/status")
async def stream_status(camera_id: str, manager: StreamManager = Depends(get_stream_manager)):
    try:
        return manager.get_status(camera_id)
    except StreamError as exc:
        return _error(exc)


@router.post("/api/streams/{camera_id}/restart")
async def restart_stream(
    camera_id: str,
    req: Optional[RestartStreamRequest] = None,
    manager: StreamManager = Depends(get_stream_manager),
):
    url = req.input_url if req else None
    try:
        result = await manager.restart_stream(camera_id, url)
    except StreamError as exc:
        return _error(exc)
    if not result.success:
        return JSONResponse(status_code=502, content=result.to_dict())
    return result.to_dict()


@router.post("/api/streams/{camera_id}/quality")
async def change_quality(
    camera_id: str,
    req: QualityChangeRequest,
    manager: StreamManager = Depends(get_stream_manager),
):
    try:
        result = await manager.change_quality(camera_id, req.quality)
    except StreamError as exc:
        return _error(exc)
    if not result["success"]:
        return JSONResponse(status_code=502, content=result)
    return result


@router.get("/api/streams/{camera_id}/probe")
async def probe_camera(
    camera_id: str,
    url: Optional[str] = None,
    manager: StreamManager = Depends(get_stream_manager),
):
    """Report whether the camera answers an ffprobe within the timeout."""
    if not url:
        session = manager.registry.get(camera_id)
        if session is None:
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": f"no url known for camera {camera_id}"},
            )
        url = session.input_url
    online = await manager.check_camera_online(url)
    return {"success": True, "cameraId": camera_id, "online": online}


@router.get("/api/worker/status")
async def worker_status(manager: StreamManager = Depends(get_stream_manager)):
    return {"success": True, **manager.worker_status()}
