"""FastAPI dependencies: session-cookie guard and service construction.

External clients are created once in the app lifespan and kept on
`app.state`; services get them injected per request.

Usage:
    @router.get("/endpoint")
    async def endpoint(
        claims: AuthClaims = Depends(require_auth),
        files: FileService = Depends(get_file_service),
    ):
        ...
"""
import logging
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from userfiles.config import settings
from userfiles.database import get_db
from userfiles.services.file_repository import FileRepository
from userfiles.services.file_service import FileService, StorageConfig
from userfiles.services.identity import IdentityClient
from userfiles.services.object_store import ObjectStore
from userfiles.services.user_repository import UserRepository
from userfiles.services.user_views import ADMIN_ROLES

logger = logging.getLogger(__name__)


@dataclass
class AuthClaims:
    """Decoded session token claims attached to a request."""

    sub: str
    role: str
    email: str | None
    token: str
    raw: dict[str, Any]


def _role_from_claims(claims: dict[str, Any]) -> str:
    app_role = (claims.get("app_metadata") or {}).get("role")
    if app_role in ADMIN_ROLES:
        return app_role
    return claims.get("role") or ""


def decode_token(token: str) -> dict[str, Any]:
    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="JWT_SECRET not set")
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def require_auth(request: Request) -> AuthClaims:
    """Verify the session cookie and return its claims, or raise 401."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    claims = decode_token(token)
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return AuthClaims(
        sub=str(sub),
        role=_role_from_claims(claims),
        email=claims.get("email"),
        token=token,
        raw=claims,
    )


async def optional_auth(request: Request) -> AuthClaims | None:
    """Like `require_auth`, but returns None for anonymous callers."""
    try:
        return await require_auth(request)
    except HTTPException:
        return None


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_identity_client(request: Request) -> IdentityClient:
    return request.app.state.identity


def default_storage_config() -> StorageConfig:
    return StorageConfig(
        bucket_name=settings.STORAGE_BUCKET,
        max_file_size=settings.MAX_FILE_SIZE,
    )


def get_file_service(
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> FileService:
    return FileService(FileRepository(db), store, default_storage_config())


def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    return UserRepository(db)
