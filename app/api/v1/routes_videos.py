from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.api import deps
from app.core.config import Settings
from app.core.storage import StorageError
from app.domain import VIDEO_CONTENT_TYPE, FailureKind, IngestError
from app.services.video_service import VideoAccessDenied, VideoNotFound

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])

THUMBNAIL_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

_FAILURE_STATUS = {
    FailureKind.staging_failed: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureKind.probe_failed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.dimensions_unavailable: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.remux_failed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.upload_failed: status.HTTP_502_BAD_GATEWAY,
}


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    handle = upload.file
    handle.seek(0, 2)
    size = handle.tell()
    handle.seek(0)
    return size


def _ingest_http_error(exc: IngestError) -> HTTPException:
    return HTTPException(
        status_code=_FAILURE_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=schemas.IngestionErrorDetail(error=exc.kind.value, message=str(exc)).model_dump(),
    )


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(owner_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.model_validate(video)


@router.get("", response_model=schemas.VideoListResponse)
async def list_videos(
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
) -> schemas.VideoListResponse:
    videos = await service.list_videos(owner_id=context.user_id)
    return schemas.VideoListResponse(videos=[schemas.VideoResponse.model_validate(video) for video in videos])


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(
    video_id: str,
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    try:
        video = await service.get_owned_video(video_id, owner_id=context.user_id)
    except (VideoNotFound, VideoAccessDenied):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    return schemas.VideoResponse.model_validate(video)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
) -> Response:
    try:
        await service.delete_video(video_id, owner_id=context.user_id)
    except (VideoNotFound, VideoAccessDenied):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{video_id}/upload", response_model=schemas.VideoResponse)
async def upload_video(
    video_id: str,
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
    video: UploadFile = File(...),
    settings: Settings = Depends(deps.get_app_settings),
) -> schemas.VideoResponse:
    if _upload_size(video) > settings.max_video_upload_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="file_too_large")
    if video.content_type != VIDEO_CONTENT_TYPE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_file_type")

    video.file.seek(0)
    try:
        record = await service.upload_video(video_id, owner_id=context.user_id, raw=video.file)
    except (VideoNotFound, VideoAccessDenied):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="video_not_found_for_user")
    except IngestError as exc:
        raise _ingest_http_error(exc) from exc
    finally:
        await video.close()
    return schemas.VideoResponse.model_validate(record)


@router.post("/{video_id}/thumbnail", response_model=schemas.VideoResponse)
async def upload_thumbnail(
    video_id: str,
    service: deps.AuthenticatedService,
    context: deps.AuthDependency,
    thumbnail: UploadFile = File(...),
    settings: Settings = Depends(deps.get_app_settings),
) -> schemas.VideoResponse:
    if _upload_size(thumbnail) > settings.max_thumbnail_upload_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="file_too_large")
    if thumbnail.content_type not in THUMBNAIL_MEDIA_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_file_type")

    payload = await thumbnail.read()
    await thumbnail.close()
    try:
        record = await service.upload_thumbnail(
            video_id,
            owner_id=context.user_id,
            payload=payload,
            media_type=thumbnail.content_type,
        )
    except (VideoNotFound, VideoAccessDenied):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="video_not_found_for_user")
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="thumbnail_upload_failed") from exc
    return schemas.VideoResponse.model_validate(record)


__all__ = ["router"]
