"""Auth request/response schemas."""
from typing import Any, Optional
from userfiles.schemas.base import CamelModel


class LoginRequest(CamelModel):
    email: str
    password: str


class CurrentUserResponse(CamelModel):
    user: dict[str, Any]


class PermissionsResponse(CamelModel):
    can_access_admin: bool
    can_access_profile: bool
    recommended_view: str
    user_id: Optional[str] = None
