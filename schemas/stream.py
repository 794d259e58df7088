from __future__ import annotations

"""Pydantic models for stream requests and discovered cameras."""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class _CameraRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    camera_id: str = Field(validation_alias=AliasChoices("cameraId", "camera_id", "id"))

    @field_validator("camera_id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        if v is None:
            raise ValueError("camera id is required")
        v = str(v).strip()
        if not v or "/" in v or v in {".", ".."}:
            raise ValueError("invalid camera id")
        return v


class CameraSource(_CameraRef):
    """A camera as returned by the discovery collaborator."""

    name: Optional[str] = None
    rtsp_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("rtspUrl", "rtsp_url"))
    rtmp_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("rtmpUrl", "rtmp_url"))
    quality: Optional[str] = None


class StartStreamRequest(_CameraRef):
    """Body of ``POST /api/streams/start``."""

    input_url: str = Field(validation_alias=AliasChoices("inputUrl", "streamUrl", "input_url"))
    quality: Optional[str] = None


class StopStreamRequest(_CameraRef):
    """Body of ``POST /api/streams/stop``."""


class QualityChangeRequest(BaseModel):
    quality: str


class RestartStreamRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    input_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("inputUrl", "streamUrl", "input_url")
    )
