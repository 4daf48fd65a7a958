# =============================================================================
# arwords_core/auth/account.py
# Account Lifecycle: register, login, logout, delete
# =============================================================================
"""
AccountService - keeps the entitlement tiers and local content consistent
with the signed-in identity.

Logout runs every cleanup step even when an earlier one fails, so a broken
local file never leaves a user signed in.
"""

from __future__ import annotations
from typing import Awaitable, Callable, List, Tuple

from arwords_core.auth.identity import AuthSession, IdentityProvider
from arwords_core.data.gateway import RemoteGateway
from arwords_core.errors import AuthenticationError, NetworkFault
from arwords_core.logging import get_logger
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.local_store import LocalStore

logger = get_logger(__name__)


class AccountService:
    """Sign-in flows plus the local state that follows the identity."""

    def __init__(
        self,
        identity: IdentityProvider,
        store: LocalStore,
        gateway: RemoteGateway,
        entitlements: EntitlementCache,
    ):
        self.identity = identity
        self.store = store
        self.gateway = gateway
        self.entitlements = entitlements

    async def register(self, email: str, password: str) -> AuthSession:
        """Create the identity and a profile without offline access."""
        session = await self.identity.sign_up(email, password)
        record = await self.gateway.create_entitlement(session.user_id, has_access=False)
        await self.entitlements.store_record(record)
        logger.info(f"Registered user {session.user_id}")
        return session

    async def login(self, email: str, password: str) -> AuthSession:
        """Sign in and refresh the cached entitlement from the remote profile."""
        session = await self.identity.sign_in(email, password)
        # A previous account's flags must not survive a user switch
        await self.entitlements.invalidate()
        try:
            record = await self.entitlements.refresh()
        except NetworkFault as e:
            logger.warning(f"Signed in but profile refresh failed: {e}")
            return session
        if record is None:
            logger.info(f"No profile for user {session.user_id}, creating one")
            record = await self.gateway.create_entitlement(session.user_id, has_access=False)
            await self.entitlements.store_record(record)
        logger.info(f"User {session.user_id} signed in (offline access: {record.has_access})")
        return session

    async def _run_steps(self, steps: List[Tuple[str, Callable[[], Awaitable[None]]]]) -> List[str]:
        failed = []
        for name, step in steps:
            try:
                await step()
            except Exception as e:
                logger.error(f"{name} failed, continuing: {e}")
                failed.append(name)
        return failed

    async def logout(self) -> List[str]:
        """
        Clear cached access, local content and profiles, then sign out.

        Returns:
            Names of steps that failed (empty on a clean logout)
        """
        failed = await self._run_steps([
            ("invalidate_access", self.entitlements.invalidate),
            ("clear_content", self.store.clear_content),
            ("clear_profiles", self.entitlements.wipe),
            ("sign_out", self.identity.sign_out),
        ])
        logger.info("User signed out" if not failed else f"Signed out with errors: {failed}")
        return failed

    async def delete_account(self) -> None:
        """Delete the remote profile, then local data, then the identity."""
        user_id = await self.identity.current_user_id()
        if not user_id:
            raise AuthenticationError("No signed-in user to delete")

        await self.gateway.delete_entitlement(user_id)
        await self._run_steps([
            ("invalidate_access", self.entitlements.invalidate),
            ("clear_content", self.store.clear_content),
            ("clear_profiles", self.entitlements.wipe),
        ])
        await self.identity.delete_account(user_id)
        logger.info(f"Deleted account {user_id}")
