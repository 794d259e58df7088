"""Application entry point instantiating the FastAPI app."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from loguru import logger

from core.config import get_config
from logging_config import setup_json_logger
from routers import health, streams
from server.startup import handle_unexpected_error, lifespan

logger = logger.bind(module="app")
setup_json_logger()
_cfg = get_config()

app = FastAPI(lifespan=lifespan)
app.add_exception_handler(Exception, handle_unexpected_error)

app.include_router(health.router)
app.include_router(streams.router)

# served directly when no reverse proxy sits in front of the worker
_streams_dir = Path(_cfg["streams_dir"])
_streams_dir.mkdir(parents=True, exist_ok=True)
app.mount(_cfg["hls_base_path"], StaticFiles(directory=str(_streams_dir)), name="hls")


@app.get("/api/v1/health")
async def health_ping() -> dict:
    return {"ok": True, "ts": datetime.utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
