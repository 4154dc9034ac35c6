from __future__ import annotations

import asyncio
import os
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings
from app.core.db import create_all
from app.main import create_app
from tests.conftest import FakeRunner

DEV_SECRET = "dev-secret"
DEV_AUDIENCE = "tubely"
DEV_ISSUER = "tubely-local"


pytestmark = pytest.mark.no_default_env


def _write_env(target_dir: Path, *, environment: str) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    env_text = f"""
TUBELY_ENV={environment}
TUBELY_LOG_LEVEL=debug
TUBELY_LOG_FORMAT=console
TUBELY_JWT_SECRET={DEV_SECRET}
TUBELY_JWT_ISSUER={DEV_ISSUER}
TUBELY_JWT_AUDIENCE={DEV_AUDIENCE}
TUBELY_STORAGE_BACKEND=local
TUBELY_LOCAL_STORAGE_BASE_PATH=assets
TUBELY_STAGING_DIR=staging
TUBELY_DB_URL=sqlite+aiosqlite:///./tubely.db
""".strip()
    env_path = target_dir / ".env"
    env_path.write_text(env_text)
    return env_path


def _clear_tubely_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ.keys()):
        if key.startswith("TUBELY_"):
            monkeypatch.delenv(key, raising=False)


async def _initialise_sqlite(database_url: str) -> None:
    engine = create_async_engine(database_url, echo=False, future=True)
    await create_all(engine)
    await engine.dispose()


def _prepare_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, *, environment: str) -> TestClient:
    _write_env(tmp_path, environment=environment)
    _clear_tubely_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    asyncio.run(_initialise_sqlite("sqlite+aiosqlite:///./tubely.db"))
    get_settings.cache_clear()
    app = create_app(process_runner=FakeRunner())
    client = TestClient(app)
    client.__enter__()
    return client


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_env_boots_without_shell_exports(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        response = client.get("/v1/health")
        assert response.status_code == 200
        assert response.json()["environment"] == "development"
    finally:
        client.close()


def test_alias_variables_are_honoured(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _clear_tubely_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TUBELY_ENV", "staging")
    monkeypatch.setenv("TUBELY_DB_URL", "sqlite+aiosqlite:///./alias.db")
    monkeypatch.setenv("TUBELY_S3_CF_DISTRO", "d111111abcdef8.cloudfront.net")

    settings = get_settings()

    assert settings.environment == "staging"
    assert settings.database_url == "sqlite+aiosqlite:///./alias.db"
    assert settings.s3_cf_distribution == "d111111abcdef8.cloudfront.net"


def test_alias_targets_do_not_carry_over_between_tests():
    for name in ("TUBELY_ENVIRONMENT", "TUBELY_DATABASE_URL", "TUBELY_S3_CF_DISTRIBUTION"):
        assert name not in os.environ
    assert get_settings().s3_cf_distribution is None


def test_production_requires_real_jwt_secret(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _clear_tubely_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TUBELY_ENVIRONMENT", "production")

    with pytest.raises(ValueError):
        get_settings()


def test_ingest_tooling_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _clear_tubely_env(monkeypatch)
    monkeypatch.chdir(tmp_path)

    settings = get_settings()

    assert settings.ffprobe_bin == "ffprobe"
    assert settings.ffmpeg_bin == "ffmpeg"
    assert settings.staging_dir is None
    assert settings.storage_backend == "local"


def test_request_with_dev_token_succeeds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _prepare_app(tmp_path, monkeypatch, environment="development")
    try:
        token_resp = client.post("/v1/admin/dev-token", json={"user_id": "user-1"})
        assert token_resp.status_code == 200
        token = token_resp.json()["token"]
        decoded = jwt.decode(token, DEV_SECRET, algorithms=["HS256"], audience=DEV_AUDIENCE, issuer=DEV_ISSUER)
        assert decoded["sub"] == "user-1"

        headers = {"Authorization": f"Bearer {token}"}
        created = client.post("/v1/videos", json={"title": "Boots"}, headers=headers)
        assert created.status_code == 201
        upload = client.post(
            f"/v1/videos/{created.json()['id']}/upload",
            files={"video": ("clip.mp4", b"mp4-bytes", "video/mp4")},
            headers=headers,
        )
        assert upload.status_code == 200
        assert (tmp_path / "assets" / "videos" / "landscape").is_dir()
    finally:
        client.close()
