"""Field extraction from JWT claims and remote session payloads.

Both validation modes funnel their raw record through
:func:`extract_identity`, so a provider gets the same field mapping and
coercion rules whether it issues JWTs or exposes a session endpoint.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from cookie_sso.config import FieldMapping
from cookie_sso.identity import SSOIdentity


def get_nested_value(record: Mapping[str, Any], path: str) -> Any | None:
    """Resolve a dot-separated path inside nested mappings.

    Args:
        record: Keyed container to search.
        path: Field path, e.g. ``"user.profile.email"``.

    Returns:
        The value at ``path``, or None if any segment is missing or an
        intermediate value is not a mapping.

    Example:
        >>> get_nested_value({"user": {"email": "a@x.com"}}, "user.email")
        'a@x.com'
    """
    current: Any = record
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true"
    return None


def _as_timestamp(value: Any) -> str | None:
    # bool is an int subclass; a boolean timestamp is not a timestamp.
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return None
        return value
    if isinstance(value, int | float):
        moment = datetime.fromtimestamp(value, tz=UTC)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return None


def extract_identity(
    record: Mapping[str, Any],
    mapping: FieldMapping | None = None,
) -> SSOIdentity | None:
    """Map a raw provider record onto an :class:`SSOIdentity`.

    Coercions:
    - text fields keep only string values
    - ``email_verified`` accepts booleans or "true"/"false" strings
      (case-insensitive; any other string is False)
    - ``last_login_at`` accepts ISO strings or epoch seconds

    Args:
        record: JWT claims or remote session user object.
        mapping: Field paths; defaults to :class:`FieldMapping`.

    Returns:
        The identity, or None when the mapped email is not a non-empty string.
    """
    mapping = mapping or FieldMapping()

    email = get_nested_value(record, mapping.email)
    if not isinstance(email, str) or not email:
        return None

    try:
        last_login_at = _as_timestamp(get_nested_value(record, mapping.last_login_at))
    except (OverflowError, OSError, ValueError):
        last_login_at = None

    return SSOIdentity(
        email=email,
        name=_as_str(get_nested_value(record, mapping.name)),
        first_name=_as_str(get_nested_value(record, mapping.first_name)),
        last_name=_as_str(get_nested_value(record, mapping.last_name)),
        profile_picture_url=_as_str(get_nested_value(record, mapping.profile_picture_url)),
        email_verified=_as_bool(get_nested_value(record, mapping.email_verified)),
        last_login_at=last_login_at,
        claims=dict(record),
    )
