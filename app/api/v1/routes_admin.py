from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import get_app_settings
from app.core.auth import AuthContext, issue_token, require_admin
from app.core.config import Settings
from app.domain import binary_available

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    user_id: str = Field(..., examples=["user-123"])
    scopes: list[str] = Field(default_factory=list)
    expires_in_s: int = Field(default=3600, gt=0, le=24 * 3600)


class DevTokenResponse(BaseModel):
    token: str


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate ffmpeg toolchain")
async def env_check(
    _: AuthContext = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
) -> EnvCheckResponse:
    return EnvCheckResponse(
        ffmpeg=binary_available(settings.ffmpeg_bin),
        ffprobe=binary_available(settings.ffprobe_bin),
    )


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development JWT")
async def mint_dev_token(payload: DevTokenRequest, settings: Settings = Depends(get_app_settings)) -> DevTokenResponse:
    if not settings.is_development:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    token = issue_token(settings, payload.user_id, scopes=payload.scopes, expires_in_s=payload.expires_in_s)
    return DevTokenResponse(token=token)


__all__ = ["router"]
