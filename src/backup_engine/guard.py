"""Caller authentication and admin authorization.

The engine itself assumes this gate has passed; the HTTP surface runs it
before every restore or export.

Usage:
    from backup_engine.guard import SupabaseAccessGuard, bearer_token

    guard = SupabaseAccessGuard(url, key, adapter)
    user_id = await guard.require_admin(bearer_token(request_header))
"""

import logging
from typing import Protocol

from backup_engine.adapters.base import DatabaseClient
from backup_engine.adapters.supabase import LazyAsyncClient
from backup_engine.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization`` header value.

    Raises:
        AuthenticationError: If the header is missing or empty.
    """
    if not authorization:
        raise AuthenticationError("Unauthorized")
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise AuthenticationError("Unauthorized")
    return token


class AccessGuard(Protocol):
    """Verifies a caller token and the admin role."""

    async def require_admin(self, token: str) -> str:
        """Return the caller's user id if they are an admin.

        Raises:
            AuthenticationError: If the token does not identify a user.
            AuthorizationError: If the user is not an admin.
        """
        ...

    async def close(self) -> None:
        """Release guard resources."""
        ...


class SupabaseAccessGuard(LazyAsyncClient):
    """``AccessGuard`` backed by Supabase Auth and a roles table.

    Args:
        url: Supabase project URL.
        key: Supabase service key.
        adapter: Database adapter used for the role lookup.
        roles_table: Table mapping ``user_id`` to ``role``.
        admin_role: Role value granting restore/export access.
    """

    def __init__(
        self,
        url: str,
        key: str,
        adapter: DatabaseClient,
        roles_table: str = "user_roles",
        admin_role: str = "admin",
    ) -> None:
        super().__init__(url, key)
        self._adapter = adapter
        self._roles_table = roles_table
        self._admin_role = admin_role

    async def authenticate(self, token: str) -> str:
        """Resolve a JWT to a user id."""
        client = await self._get_client()
        try:
            response = await client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            raise AuthenticationError("Unauthorized") from e
        if response is None or response.user is None:
            raise AuthenticationError("Unauthorized")
        return response.user.id

    async def require_admin(self, token: str) -> str:
        user_id = await self.authenticate(token)
        roles = await self._adapter.select(
            self._roles_table,
            "role",
            filters={"user_id": user_id, "role": self._admin_role},
        )
        if not roles:
            logger.warning(f"Non-admin user {user_id} denied")
            raise AuthorizationError("Only administrators may restore or export backups")
        return user_id
