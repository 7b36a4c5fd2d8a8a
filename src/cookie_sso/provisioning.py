"""Just-in-time provisioning of local users from SSO identities.

Resolution flow for one request:
1. Look up the user by exact email match
2. Found: sync present profile fields (one update, skipped when empty)
3. Not found: create the user if sign-up is allowed, otherwise deny
4. Store failures surface as StoreError; nothing is retried here

Each call performs at most one write. Duplicate creation by concurrent first
logins is prevented by the store's unique email constraint, not here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cookie_sso.exceptions import SignUpDeniedError, StoreError

if TYPE_CHECKING:
    from cookie_sso.identity import SSOIdentity
    from cookie_sso.ports import UserRecord, UserStore

logger = logging.getLogger(__name__)


class UserProvisioner:
    """Find, update or create the local user for an SSO identity.

    Attributes:
        _store: User store collaborator.
        _collection: Target collection slug.
    """

    def __init__(self, store: UserStore, collection: str) -> None:
        self._store = store
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    async def resolve(self, identity: SSOIdentity, *, allow_sign_up: bool) -> UserRecord:
        """Return the local user for ``identity``, provisioning as needed.

        Args:
            identity: Validated SSO identity.
            allow_sign_up: Whether unknown users may be created.

        Returns:
            The stored user record after any update or creation.

        Raises:
            SignUpDeniedError: If the user does not exist and sign-up is disabled.
            StoreError: If a store operation fails.
        """
        existing = await self._call("find", self._store.find_by_email, identity.email)
        profile = identity.profile_fields()

        if existing is not None:
            if not profile:
                logger.debug(
                    "user_sync_skipped",
                    extra={"collection": self._collection, "user_id": existing.get("id")},
                )
                return existing
            updated: UserRecord = await self._call(
                "update", self._store.update, existing["id"], profile
            )
            logger.debug(
                "user_synced",
                extra={
                    "collection": self._collection,
                    "user_id": existing["id"],
                    "fields": sorted(profile),
                },
            )
            return updated

        if not allow_sign_up:
            logger.info("user_signup_denied", extra={"collection": self._collection})
            raise SignUpDeniedError(identity.email, collection=self._collection)

        created: UserRecord = await self._call(
            "create", self._store.create, {"email": identity.email, **profile}
        )
        logger.info(
            "user_provisioned",
            extra={"collection": self._collection, "user_id": created.get("id")},
        )
        return created

    async def _call(self, operation: str, method: Any, *args: Any) -> Any:
        """Invoke a store method, re-raising failures as StoreError."""
        try:
            return await method(self._collection, *args)
        except StoreError:
            raise
        except Exception as exc:
            logger.exception(
                "user_store_failed",
                extra={"collection": self._collection, "operation": operation},
            )
            raise StoreError(operation=operation, collection=self._collection) from exc
