"""Users API routes. Every response is a role-based projection of auth.users."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from userfiles.dependencies import AuthClaims, get_user_repository, require_auth
from userfiles.models.user import AudienceLevel, UserRecord
from userfiles.schemas.auth import PermissionsResponse
from userfiles.services import user_views
from userfiles.services.user_repository import UserRepository

router = APIRouter(prefix="/users", tags=["users"])

VIEW_QUERY = Query(None, description="public | authenticated | admin")


@router.get("")
async def list_users(
    view: Optional[str] = VIEW_QUERY,
    claims: AuthClaims = Depends(require_auth),
    users: UserRepository = Depends(get_user_repository),
):
    """List users. Public view unless a higher one is requested and permitted."""
    requested = view or AudienceLevel.PUBLIC
    records = await users.find_all()
    return [
        user_views.project(u, user_views.effective_level(requested, claims.role, u.id, claims.sub))
        for u in records
    ]


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    view: Optional[str] = VIEW_QUERY,
    claims: AuthClaims = Depends(require_auth),
    users: UserRepository = Depends(get_user_repository),
):
    """Get a user. Without `view`, the highest level the caller is allowed."""
    user = await _get_or_404(users, user_id)
    if view:
        level = user_views.effective_level(view, claims.role, user.id, claims.sub)
    else:
        level = user_views.resolve_level(claims.role, user.id, claims.sub)
    return user_views.project(user, level)


@router.get("/{user_id}/public")
async def get_user_public(
    user_id: str,
    claims: AuthClaims = Depends(require_auth),
    users: UserRepository = Depends(get_user_repository),
):
    user = await _get_or_404(users, user_id)
    return user_views.project(user, AudienceLevel.PUBLIC)


@router.get("/{user_id}/profile")
async def get_user_profile(
    user_id: str,
    claims: AuthClaims = Depends(require_auth),
    users: UserRepository = Depends(get_user_repository),
):
    """Authenticated view for the owner or an admin; public view for anyone else."""
    user = await _get_or_404(users, user_id)
    level = user_views.effective_level(AudienceLevel.AUTHENTICATED, claims.role, user.id, claims.sub)
    return user_views.project(user, level)


@router.get("/{user_id}/permissions", response_model=PermissionsResponse)
async def get_user_permissions(
    user_id: str,
    claims: AuthClaims = Depends(require_auth),
):
    """Which views the caller may use for `user_id`."""
    return {
        **user_views.permissions(claims.role, claims.sub, user_id),
        "user_id": user_id,
    }


async def _get_or_404(users: UserRepository, user_id: str) -> UserRecord:
    user = await users.find_one(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
