from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import AuthContext, get_auth_context
from app.core.config import Settings, get_settings
from app.core.storage import ObjectStorage
from app.domain import ProcessRunner, VideoIngestor
from app.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> ObjectStorage:
    storage: ObjectStorage = request.app.state.storage
    return storage


def get_process_runner(request: Request) -> ProcessRunner:
    runner: ProcessRunner = request.app.state.process_runner
    return runner


def get_app_settings() -> Settings:
    return get_settings()


def get_ingestor(
    storage: ObjectStorage = Depends(get_storage),
    runner: ProcessRunner = Depends(get_process_runner),
    settings: Settings = Depends(get_app_settings),
) -> VideoIngestor:
    return VideoIngestor.from_settings(settings, storage, runner)


async def get_video_service(
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
    ingestor: VideoIngestor = Depends(get_ingestor),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[VideoService]:
    service = VideoService(settings, storage, session, ingestor)
    yield service


AuthenticatedService = Annotated[VideoService, Depends(get_video_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_storage",
    "get_process_runner",
    "get_app_settings",
    "get_ingestor",
    "get_video_service",
    "AuthenticatedService",
    "AuthDependency",
]
