"""Pytest configuration and fixtures for API tests."""

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import jwt
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from fastapi import FastAPI
from fastapi.testclient import TestClient

from userfiles.config import settings
from userfiles.models.file_record import FileCategory, FileRecord
from userfiles.models.user import UserRecord
from userfiles.services.file_repository import FileRepository
from userfiles.services.file_service import FileService, StorageConfig
from userfiles.services.object_store import Bucket

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


# ============================================================================
# Settings / tokens
# ============================================================================


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Every test signs and verifies session tokens with a known secret."""
    monkeypatch.setattr(settings, "JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(settings, "AUTH_COOKIE_SECURE", False)
    return TEST_JWT_SECRET


def make_token(sub: str = "user-1", role: str = "authenticated", expires_in: int = 3600, **claims: Any) -> str:
    payload = {
        "sub": sub,
        "role": role,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


# ============================================================================
# Record factories
# ============================================================================


def make_user(**overrides: Any) -> UserRecord:
    """A fully populated auth.users row, secrets included."""
    created = datetime(2023, 1, 1, tzinfo=timezone.utc)
    values = dict(
        instance_id="00000000-0000-0000-0000-000000000000",
        id="user-1",
        aud="authenticated",
        role="authenticated",
        email="jane@example.com",
        encrypted_password="$2a$10$hash",
        email_confirmed_at=created,
        invited_at=None,
        confirmation_token="conf-token",
        confirmation_sent_at=created,
        recovery_token="recovery-token",
        recovery_sent_at=None,
        email_change_token_new="change-new",
        email_change="new@example.com",
        email_change_sent_at=None,
        last_sign_in_at=created + timedelta(days=1),
        raw_app_meta_data={"provider": "email", "providers": ["email"]},
        raw_user_meta_data={"email_verified": True, "preferred_language": "en"},
        is_super_admin=False,
        created_at=created,
        updated_at=created + timedelta(days=1),
        phone="+1234567890",
        phone_confirmed_at=None,
        phone_change="",
        phone_change_token="phone-token",
        phone_change_sent_at=None,
        confirmed_at=created,
        email_change_token_current="change-current",
        email_change_confirm_status=0,
        banned_until=None,
        reauthentication_token="reauth-token",
        reauthentication_sent_at=None,
        is_sso_user=False,
        deleted_at=None,
        is_anonymous=False,
    )
    values.update(overrides)
    return UserRecord(**values)


def make_file_record(**overrides: Any) -> FileRecord:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    values = dict(
        id=uuid.uuid4(),
        filename=f"report_{uuid.uuid4()}.pdf",
        original_name="report.pdf",
        size=1024,
        mime_type="application/pdf",
        category=FileCategory.DOCUMENT,
        description="Quarterly report",
        tags=["finance"],
        folder="reports",
        bucket_name="test-bucket",
        path="reports/report_x.pdf",
        public_url=None,
        uploaded_by="user-1",
        uploaded_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return FileRecord(**values)


# ============================================================================
# Service fixtures
# ============================================================================


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(bucket_name="test-bucket", max_file_size=10 * 1024 * 1024)


@pytest.fixture
def file_repository() -> AsyncMock:
    """FileRepository double; `create` echoes back a FileRecord."""
    repo = AsyncMock(spec=FileRepository)

    async def create(**values):
        return make_file_record(**values)

    repo.create.side_effect = create
    repo.get.return_value = None
    repo.find_page.return_value = ([], 0)
    return repo


@pytest.fixture
def object_store() -> AsyncMock:
    store = AsyncMock()
    store.list_buckets.return_value = [Bucket(name="test-bucket")]
    store.upload.side_effect = lambda bucket, path, data, content_type: path
    store.download.return_value = b"file-bytes"
    store.create_signed_url.return_value = "https://storage.test/signed?token=abc"
    store.get_public_url = MagicMock(
        side_effect=lambda bucket, path: f"https://storage.test/public/{bucket}/{path}"
    )
    return store


@pytest.fixture
def file_service(file_repository, object_store, storage_config) -> FileService:
    return FileService(file_repository, object_store, storage_config)


# ============================================================================
# Application fixtures
# ============================================================================


@pytest.fixture
def mock_file_service() -> AsyncMock:
    return AsyncMock(spec=FileService)


@pytest.fixture
def mock_user_repository() -> AsyncMock:
    repo = AsyncMock()
    repo.find_all.return_value = []
    repo.find_one.return_value = None
    return repo


@pytest.fixture
def mock_identity() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(mock_file_service, mock_user_repository, mock_identity) -> FastAPI:
    """Routers only, no lifespan, so no database or network is touched."""
    from userfiles.dependencies import get_file_service, get_identity_client, get_user_repository
    from userfiles.routes import auth, files, users

    application = FastAPI()
    application.include_router(auth.router)
    application.include_router(users.router)
    application.include_router(files.router)

    application.dependency_overrides[get_file_service] = lambda: mock_file_service
    application.dependency_overrides[get_user_repository] = lambda: mock_user_repository
    application.dependency_overrides[get_identity_client] = lambda: mock_identity
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Upstream HTTP fakes
# ============================================================================


@pytest_asyncio.fixture
async def fake_upstream():
    """Start a local aiohttp server around `handler`.

    Returns (base_url, session); both are torn down after the test.
    """
    servers: list[TestServer] = []
    sessions: list[aiohttp.ClientSession] = []

    async def start(handler) -> tuple[str, aiohttp.ClientSession]:
        upstream = web.Application()
        upstream.router.add_route("*", "/{tail:.*}", handler)
        server = TestServer(upstream)
        await server.start_server()
        servers.append(server)

        session = aiohttp.ClientSession()
        sessions.append(session)
        return str(server.make_url("/")).rstrip("/"), session

    yield start

    for session in sessions:
        await session.close()
    for server in servers:
        await server.close()
