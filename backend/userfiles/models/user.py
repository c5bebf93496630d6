"""UserRecord - read-only snapshot of an identity-provider user (auth.users).

The auth.users table is owned by the identity provider, so it is read with raw
SQL and mapped into a plain dataclass instead of an ORM model.
"""
import enum
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping


class AudienceLevel(str, enum.Enum):
    """Disclosure tiers, ordered by increasing visibility."""
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    AudienceLevel.PUBLIC: 0,
    AudienceLevel.AUTHENTICATED: 1,
    AudienceLevel.ADMIN: 2,
}


# Never part of any projection
SECRET_FIELDS = frozenset({
    "encrypted_password",
    "confirmation_token",
    "recovery_token",
    "email_change_token_new",
    "email_change_token_current",
    "phone_change_token",
    "reauthentication_token",
})


@dataclass
class UserRecord:
    id: str
    email: str = ""
    instance_id: str | None = None
    aud: str = ""
    role: str = ""
    encrypted_password: str = ""
    email_confirmed_at: datetime | None = None
    invited_at: datetime | None = None
    confirmation_token: str = ""
    confirmation_sent_at: datetime | None = None
    recovery_token: str = ""
    recovery_sent_at: datetime | None = None
    email_change_token_new: str = ""
    email_change: str = ""
    email_change_sent_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    raw_app_meta_data: dict[str, Any] | None = None
    raw_user_meta_data: dict[str, Any] | None = None
    is_super_admin: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    phone: str | None = None
    phone_confirmed_at: datetime | None = None
    phone_change: str = ""
    phone_change_token: str = ""
    phone_change_sent_at: datetime | None = None
    confirmed_at: datetime | None = None
    email_change_token_current: str = ""
    email_change_confirm_status: int = 0
    banned_until: datetime | None = None
    reauthentication_token: str = ""
    reauthentication_sent_at: datetime | None = None
    is_sso_user: bool = False
    deleted_at: datetime | None = None
    is_anonymous: bool = False
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserRecord":
        """Build a record from a DB row mapping; unknown columns go to `extra`."""
        known = {f.name for f in fields(cls)} - {"extra"}
        values = {k: v for k, v in row.items() if k in known}
        if values.get("id") is not None:
            values["id"] = str(values["id"])
        if values.get("instance_id") is not None:
            values["instance_id"] = str(values["instance_id"])
        extra = {k: v for k, v in row.items() if k not in known}
        return cls(**values, extra=extra)


USER_FIELDS = tuple(f.name for f in fields(UserRecord) if f.name != "extra")
