"""User view projection.

Two independent steps:
- deciding which audience level a requester may use (`resolve_level`,
  `effective_level` and the two `can_access_*` predicates);
- redacting a `UserRecord` down to that level (`project`).

Every level is an explicit allow-list of fields, so columns the identity
provider adds later never leak into a view.
"""
from datetime import datetime
from typing import Any, Iterable

from userfiles.models.user import AudienceLevel, UserRecord

ADMIN_ROLES = frozenset({"admin", "super_admin"})

PUBLIC_FIELDS = ("id", "email", "role", "is_verified", "created_at")

AUTHENTICATED_FIELDS = (
    "id",
    "email",
    "role",
    "email_confirmed_at",
    "last_sign_in_at",
    "raw_user_meta_data",
    "created_at",
    "updated_at",
    "phone",
    "phone_confirmed_at",
    "confirmed_at",
    "is_sso_user",
    "is_anonymous",
)

ADMIN_FIELDS = (
    "instance_id",
    "id",
    "aud",
    "role",
    "email",
    "email_confirmed_at",
    "invited_at",
    "confirmation_sent_at",
    "recovery_sent_at",
    "email_change",
    "email_change_sent_at",
    "last_sign_in_at",
    "raw_app_meta_data",
    "raw_user_meta_data",
    "is_super_admin",
    "created_at",
    "updated_at",
    "phone",
    "phone_confirmed_at",
    "phone_change",
    "phone_change_sent_at",
    "confirmed_at",
    "email_change_confirm_status",
    "banned_until",
    "reauthentication_sent_at",
    "is_sso_user",
    "deleted_at",
    "is_anonymous",
)


def mask_email(email: str | None) -> str:
    """Hide the local part of an address: ``a@b.com`` -> ``***@b.com``."""
    parts = (email or "").split("@")
    domain = parts[1] if len(parts) > 1 else ""
    return f"***@{domain}"


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _pick(user: UserRecord, names: Iterable[str]) -> dict[str, Any]:
    return {name: _serialize(getattr(user, name)) for name in names}


def project(user: UserRecord, level: AudienceLevel | str | None) -> dict[str, Any]:
    """Redact `user` to the fields visible at `level`.

    Unknown or malformed levels are treated as PUBLIC.
    """
    level = parse_level(level)

    if level is AudienceLevel.ADMIN:
        return _pick(user, ADMIN_FIELDS)

    if level is AudienceLevel.AUTHENTICATED:
        return _pick(user, AUTHENTICATED_FIELDS)

    return {
        "id": user.id,
        "email": mask_email(user.email),
        "role": user.role,
        "is_verified": user.email_confirmed_at is not None,
        "created_at": _serialize(user.created_at),
    }


def project_many(users: Iterable[UserRecord], level: AudienceLevel | str | None) -> list[dict[str, Any]]:
    return [project(u, level) for u in users]


def parse_level(value: AudienceLevel | str | None) -> AudienceLevel:
    """Coerce a query-string value to an AudienceLevel, defaulting to PUBLIC."""
    if isinstance(value, AudienceLevel):
        return value
    try:
        return AudienceLevel(str(value).strip().lower())
    except ValueError:
        return AudienceLevel.PUBLIC


def can_access_admin(role: str | None) -> bool:
    return role in ADMIN_ROLES


def can_access_authenticated(requester_id: str | None, target_id: str | None) -> bool:
    return requester_id is not None and requester_id == target_id


def resolve_level(
    requester_role: str | None,
    target_id: str | None,
    requester_id: str | None = None,
) -> AudienceLevel:
    """Highest audience level the requester is entitled to for `target_id`."""
    if can_access_admin(requester_role):
        return AudienceLevel.ADMIN
    if can_access_authenticated(requester_id, target_id):
        return AudienceLevel.AUTHENTICATED
    return AudienceLevel.PUBLIC


def effective_level(
    requested: AudienceLevel | str | None,
    requester_role: str | None,
    target_id: str | None,
    requester_id: str | None = None,
) -> AudienceLevel:
    """Level to actually serve for an explicit request.

    A request above what `resolve_level` grants is downgraded silently to the
    next permissible level; it never fails and never discloses more than was
    asked for.
    """
    requested = parse_level(requested)
    allowed = resolve_level(requester_role, target_id, requester_id)
    if requested.rank <= allowed.rank:
        return requested
    return allowed


def permissions(requester_role: str | None, requester_id: str | None, target_id: str | None) -> dict[str, Any]:
    admin = can_access_admin(requester_role)
    profile = can_access_authenticated(requester_id, target_id)
    return {
        "can_access_admin": admin,
        "can_access_profile": profile,
        "recommended_view": resolve_level(requester_role, target_id, requester_id).value,
    }
