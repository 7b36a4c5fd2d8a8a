"""Normalized SSO identity value object."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Store field names for the profile attributes synced on every login.
PROFILE_FIELDS: tuple[str, ...] = (
    "name",
    "first_name",
    "last_name",
    "profile_picture_url",
    "email_verified",
    "last_login_at",
)


@dataclass(frozen=True, slots=True)
class SSOIdentity:
    """Identity asserted by the SSO provider for one request.

    Produced by the session validator; never constructed with an empty email.

    Attributes:
        email: Email address; the only key used to match local users.
        name: Combined display name.
        first_name: Given name.
        last_name: Family name.
        profile_picture_url: Avatar URL.
        email_verified: Whether the provider verified the email.
        last_login_at: ISO-8601 timestamp of the provider login.
        claims: Raw source record (JWT claims or remote user object).
    """

    email: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_picture_url: str | None = None
    email_verified: bool | None = None
    last_login_at: str | None = None
    claims: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("SSOIdentity requires a non-empty email")

    def profile_fields(self) -> dict[str, Any]:
        """Return the profile fields present on this identity.

        ``None`` values and empty strings are omitted so callers can use the
        result directly as a sparse update.
        """
        fields: dict[str, Any] = {}
        for name in PROFILE_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                continue
            fields[name] = value
        return fields
