from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    environment: Optional[str] = None
    storage_backend: Optional[str] = None


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Boot.dev intro"})
    description: Optional[str] = Field(default=None, json_schema_extra={"example": "First cut of the intro video."})


class VideoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]


class IngestionErrorDetail(BaseModel):
    error: str = Field(description="Failure kind, e.g. probe_failed or upload_failed.")
    message: str
