"""Authenticated SSO principal value object."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class SSOPrincipal:
    """User authenticated through an SSO cookie for one request.

    Tagged with the namespace so deployments with several auth namespaces
    (e.g. ``admin`` and ``app``) can tell which collection authenticated the
    caller.

    Attributes:
        namespace: Auth plugin name that accepted the cookie.
        collection: User collection slug the user belongs to.
        strategy: Strategy name, ``sso-cookie-{collection}``.
        email: Email the user was matched on.
        user: Stored user record.
    """

    namespace: str
    collection: str
    strategy: str
    email: str
    user: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def user_id(self) -> Any:
        return self.user.get("id")

    def as_user_payload(self) -> dict[str, Any]:
        """User record augmented with strategy and collection, for JSON responses."""
        return {**self.user, "_strategy": self.strategy, "collection": self.collection}
