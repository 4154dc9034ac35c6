import asyncio
import json
from pathlib import Path
from typing import Sequence

import jwt
import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.db import Base, create_all, create_engine
from app.core.storage import ObjectStorage, StorageError, StoredObject
from app.ingest.process_runner import ProcessResult
from app.main import create_app

JWT_SECRET = "test-secret"
JWT_ISSUER = "tubely-test"
JWT_AUDIENCE = "tubely"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )


def probe_output(width: int | None, height: int | None) -> str:
    stream = {}
    if width is not None:
        stream["width"] = width
    if height is not None:
        stream["height"] = height
    return json.dumps({"programs": [], "streams": [stream]})


class FakeRunner:
    """Stands in for ffprobe/ffmpeg, returning canned results per tool."""

    def __init__(
        self,
        *,
        probe: ProcessResult | None = None,
        remux: ProcessResult | None = None,
        probe_error: Exception | None = None,
        remux_error: Exception | None = None,
        write_output: bool = True,
    ):
        self.probe = probe or ProcessResult(stdout=probe_output(1920, 1080), stderr="", exit_code=0)
        self.remux = remux or ProcessResult(stdout="", stderr="", exit_code=0)
        self.probe_error = probe_error
        self.remux_error = remux_error
        self.write_output = write_output
        self.calls: list[tuple[str, list[str], float | None]] = []

    def run(self, command: str, args: Sequence[str], *, input_text: str | None = None, timeout_s: float | None = None) -> ProcessResult:
        args = list(args)
        self.calls.append((command, args, timeout_s))
        if command.endswith("ffprobe"):
            if self.probe_error:
                raise self.probe_error
            return self.probe
        if self.remux_error:
            raise self.remux_error
        if self.write_output:
            source = Path(args[args.index("-i") + 1])
            Path(args[-1]).write_bytes(b"faststart:" + source.read_bytes())
        return self.remux

    def commands(self) -> list[str]:
        return [command for command, _, _ in self.calls]


class RecordingStorage(ObjectStorage):
    """In-memory object store that remembers every write."""

    def __init__(self, *, fail_with: str | None = None, base_url: str = "https://cdn.example.test"):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_with = fail_with
        self.base_url = base_url

    def put_object(self, key: str, source: Path, *, content_type: str) -> StoredObject:
        return self.put_bytes(key, source.read_bytes(), content_type=content_type)

    def put_bytes(self, key: str, payload: bytes, *, content_type: str) -> StoredObject:
        if self.fail_with:
            raise StorageError(self.fail_with)
        self.objects[key] = (payload, content_type)
        return StoredObject(key=key, size_bytes=len(payload), content_type=content_type)

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"


# get_settings writes these straight into os.environ; registering them undoes that on teardown
ALIAS_TARGETS = ("TUBELY_ENVIRONMENT", "TUBELY_DATABASE_URL", "TUBELY_S3_CF_DISTRIBUTION")


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    for name in ALIAS_TARGETS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "tubely_test.db"

    monkeypatch.setenv("TUBELY_ENV", "development")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_STAGING_DIR", str(tmp_path / "staging"))
    monkeypatch.setenv("TUBELY_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", JWT_ISSUER)
    monkeypatch.setenv("TUBELY_JWT_AUDIENCE", JWT_AUDIENCE)

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        await create_all(engine)
        await engine.dispose()

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def staging_dir(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def client(configure_environment, fake_runner):
    app = create_app(process_runner=fake_runner)
    with TestClient(app) as client:
        yield client


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"sub": user_id, "iss": JWT_ISSUER, "aud": JWT_AUDIENCE}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture()
def user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-1')}"}


@pytest.fixture()
def other_user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-2')}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('admin-1', scopes=['admin'])}"}
