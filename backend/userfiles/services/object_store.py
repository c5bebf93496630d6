"""Object storage clients. Supabase Storage for production, local disk for dev.

Both implement the same bucket-scoped async interface (`ObjectStore`). Any
failure surfaces as `StorageError` carrying the upstream message.
"""
import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

import aiofiles
import aiohttp
import jwt

from userfiles.config import Settings

logger = logging.getLogger(__name__)

PUBLIC_MARKER = ".public"


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class Bucket:
    name: str
    public: bool = False


class ObjectStore(Protocol):
    async def list_buckets(self) -> list[Bucket]: ...

    async def create_bucket(
        self,
        name: str,
        public: bool = False,
        allowed_mime_types: list[str] | None = None,
        file_size_limit: int | None = None,
    ) -> None: ...

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str: ...

    async def download(self, bucket: str, path: str) -> bytes: ...

    async def remove(self, bucket: str, paths: list[str]) -> None: ...

    def get_public_url(self, bucket: str, path: str) -> str: ...

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str: ...


class SupabaseStorageClient:
    """Supabase Storage REST client. The service key never leaves this object.

    The aiohttp session is owned by the caller (the app lifespan) so one
    connection pool is shared with the identity client.
    """

    def __init__(self, base_url: str, service_key: str, session: aiohttp.ClientSession):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}/storage/v1{suffix}"

    @staticmethod
    def _object_key(bucket: str, path: str) -> str:
        return f"{quote(bucket, safe='')}/{quote(path.lstrip('/'), safe='/')}"

    async def _request(self, method: str, suffix: str, **kwargs) -> bytes:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        url = self._url(suffix)
        try:
            async with self._session.request(method, url, headers=headers, **kwargs) as resp:
                status = resp.status
                body = await resp.read()
        except asyncio.TimeoutError as e:
            raise StorageError(f"Storage request timed out: {method} {url}") from e
        except aiohttp.ClientError as e:
            raise StorageError(str(e) or type(e).__name__) from e

        if status >= 400:
            raise StorageError(_error_message(body, status), status)
        return body

    async def _request_json(self, method: str, suffix: str, **kwargs) -> Any:
        body = await self._request(method, suffix, **kwargs)
        return json.loads(body) if body else None

    async def list_buckets(self) -> list[Bucket]:
        data = await self._request_json("GET", "/bucket")
        return [Bucket(name=b["name"], public=bool(b.get("public"))) for b in data or []]

    async def create_bucket(
        self,
        name: str,
        public: bool = False,
        allowed_mime_types: list[str] | None = None,
        file_size_limit: int | None = None,
    ) -> None:
        await self._request(
            "POST",
            "/bucket",
            json={
                "id": name,
                "name": name,
                "public": public,
                "allowed_mime_types": allowed_mime_types,
                "file_size_limit": file_size_limit,
            },
        )

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        await self._request(
            "POST",
            f"/object/{self._object_key(bucket, path)}",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        return await self._request("GET", f"/object/{self._object_key(bucket, path)}")

    async def remove(self, bucket: str, paths: list[str]) -> None:
        await self._request(
            "DELETE",
            f"/object/{quote(bucket, safe='')}",
            json={"prefixes": paths},
        )

    def get_public_url(self, bucket: str, path: str) -> str:
        return self._url(f"/object/public/{self._object_key(bucket, path)}")

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        data = await self._request_json(
            "POST",
            f"/object/sign/{self._object_key(bucket, path)}",
            json={"expiresIn": expires_in},
        )
        signed = (data or {}).get("signedURL")
        if not signed:
            raise StorageError("Signed URL missing from storage response")
        return self._url(signed if signed.startswith("/") else f"/{signed}")


class LocalObjectStore:
    """Buckets as directories under `base_path`. Development only."""

    def __init__(self, base_path: str | Path, public_base_url: str, signing_secret: str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret

    def _bucket_dir(self, bucket: str) -> Path:
        bucket_dir = (self.base_path / bucket).resolve()
        if bucket_dir.parent != self.base_path.resolve():
            raise StorageError(f"Invalid bucket name: {bucket}")
        return bucket_dir

    def _object_path(self, bucket: str, path: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        if not bucket_dir.is_dir():
            raise StorageError(f"Bucket not found: {bucket}", 404)
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise StorageError(f"Invalid object path: {path}")
        return target

    async def list_buckets(self) -> list[Bucket]:
        return [
            Bucket(name=p.name, public=(p / PUBLIC_MARKER).exists())
            for p in sorted(self.base_path.iterdir())
            if p.is_dir()
        ]

    async def create_bucket(
        self,
        name: str,
        public: bool = False,
        allowed_mime_types: list[str] | None = None,
        file_size_limit: int | None = None,
    ) -> None:
        bucket_dir = self._bucket_dir(name)
        if bucket_dir.exists():
            raise StorageError(f"Bucket already exists: {name}", 409)
        bucket_dir.mkdir(parents=True)
        if public:
            (bucket_dir / PUBLIC_MARKER).touch()
        logger.info("Created local bucket '%s' at %s", name, bucket_dir)

    def is_public(self, bucket: str) -> bool:
        return (self._bucket_dir(bucket) / PUBLIC_MARKER).exists()

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self._object_path(bucket, path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}", 409)
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(data)
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}", 404)
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    async def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._object_path(bucket, path)
            if target.exists():
                os.remove(target)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/storage/local/public/{bucket}/{quote(path, safe='/')}"

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        self._object_path(bucket, path)
        payload = {
            "bucket": bucket,
            "path": path,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        token = jwt.encode(payload, self._secret, algorithm="HS256")
        return f"{self.public_base_url}/storage/local/signed/{token}"

    def verify_signed_token(self, token: str) -> tuple[str, str]:
        """Return (bucket, path) for a token minted by `create_signed_url`."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError as e:
            raise StorageError("Signed URL expired", 403) from e
        except jwt.InvalidTokenError as e:
            raise StorageError("Invalid signed URL", 403) from e
        return payload["bucket"], payload["path"]


def _error_message(body: bytes, status: int) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")[:500] or f"HTTP {status}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


def create_object_store(settings: Settings, session: Optional[aiohttp.ClientSession] = None) -> ObjectStore:
    """Pick the storage backend configured by FILE_STORAGE_TYPE."""
    if settings.FILE_STORAGE_TYPE == "local":
        return LocalObjectStore(
            settings.FILE_STORAGE_PATH,
            settings.PUBLIC_BASE_URL,
            settings.JWT_SECRET or "local-storage-secret",
        )

    if settings.FILE_STORAGE_TYPE == "supabase":
        if session is None:
            raise ValueError("Supabase storage requires an aiohttp.ClientSession")
        return SupabaseStorageClient(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, session)

    raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")
