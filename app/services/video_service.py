from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.storage import ObjectStorage
from app.db.models import Video
from app.domain import OwnerContext, VideoIngestor, build_thumbnail_key, new_random_id
from app.ingest.pipeline import RawUpload


class VideoNotFound(LookupError):
    pass


class VideoAccessDenied(PermissionError):
    pass


class VideoService:
    def __init__(self, settings: Settings, storage: ObjectStorage, session: AsyncSession, ingestor: VideoIngestor):
        self.settings = settings
        self.storage = storage
        self.session = session
        self.ingestor = ingestor
        self.logger = get_logger(component="video_service")

    async def create_video(self, *, owner_id: str, title: str, description: str | None) -> Video:
        now = datetime.now(timezone.utc)
        video = Video(
            id=uuid4().hex,
            owner_id=owner_id,
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
        )
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def list_videos(self, *, owner_id: str) -> Sequence[Video]:
        stmt = select(Video).where(Video.owner_id == owner_id).order_by(Video.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_owned_video(self, video_id: str, *, owner_id: str) -> Video:
        video = await self.session.get(Video, video_id)
        if video is None:
            raise VideoNotFound(video_id)
        if video.owner_id != owner_id:
            raise VideoAccessDenied(video_id)
        return video

    async def delete_video(self, video_id: str, *, owner_id: str) -> None:
        video = await self.get_owned_video(video_id, owner_id=owner_id)
        await self.session.delete(video)
        await self.session.commit()

    async def upload_video(self, video_id: str, *, owner_id: str, raw: RawUpload) -> Video:
        """Ingest ``raw`` and point the video record at the processed upload.

        The record is only written once the ingestion returned a URL; any
        ingestion error propagates with the record untouched.
        """
        video = await self.get_owned_video(video_id, owner_id=owner_id)
        self.logger.info("video_upload_started", video_id=video_id, owner_id=owner_id)

        url = await self.ingestor.ingest_async(raw, OwnerContext(owner_id=owner_id, video_id=video_id))

        video.video_url = url
        video.updated_at = datetime.now(timezone.utc)
        await self.session.commit()
        await self.session.refresh(video)
        self.logger.info("video_upload_completed", video_id=video_id, video_url=url)
        return video

    async def upload_thumbnail(self, video_id: str, *, owner_id: str, payload: bytes, media_type: str) -> Video:
        video = await self.get_owned_video(video_id, owner_id=owner_id)
        key = build_thumbnail_key(new_random_id(), media_type)
        await asyncio.to_thread(self.storage.put_bytes, key, payload, content_type=media_type)

        video.thumbnail_url = self.storage.url_for(key)
        video.updated_at = datetime.now(timezone.utc)
        await self.session.commit()
        await self.session.refresh(video)
        self.logger.info("thumbnail_uploaded", video_id=video_id, key=key)
        return video


__all__ = ["VideoService", "VideoNotFound", "VideoAccessDenied"]
