# =============================================================================
# arwords_core/offline/favorites.py
# Favorites Reconciliation Across Local and Remote Stores
# =============================================================================
"""
FavoritesReconciler - applies favorite toggles to both stores.

The local store is written first (when the user has a downloaded copy),
then the remote store when reachable. A remote failure after a successful
local write is logged and swallowed; the next full download re-reads the
remote favorites, so a toggle made offline can be undone by it.
"""

from __future__ import annotations
from typing import Optional

from arwords_core.auth.identity import IdentityProvider
from arwords_core.data.gateway import RemoteGateway
from arwords_core.errors import AuthenticationError, NetworkFault, OfflineUnavailable, error_boundary
from arwords_core.logging import get_logger
from arwords_core.offline.connection_manager import ConnectionManager
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.local_store import LocalStore

logger = get_logger(__name__)


class FavoritesReconciler:
    """Local-first favorites writes with best-effort remote propagation."""

    def __init__(
        self,
        identity: IdentityProvider,
        store: LocalStore,
        gateway: RemoteGateway,
        entitlements: EntitlementCache,
        connectivity: ConnectionManager,
    ):
        self.identity = identity
        self.store = store
        self.gateway = gateway
        self.entitlements = entitlements
        self.connectivity = connectivity

    async def _uses_local(self) -> bool:
        return await self.entitlements.check_access() and await self.store.has_local_copy()

    async def add_favorite(self, entry_id: str) -> None:
        await self._toggle(entry_id, True)

    async def remove_favorite(self, entry_id: str) -> None:
        await self._toggle(entry_id, False)

    async def _toggle(self, entry_id: str, flag: bool) -> None:
        action = "add_favorite" if flag else "remove_favorite"
        user_id = await self.identity.current_user_id()
        if not user_id:
            raise AuthenticationError("Sign in to manage favorites")

        local_applied = False
        if await self._uses_local():
            local_applied = await self.store.set_favorite(entry_id, flag)
            if not local_applied:
                logger.warning(f"{action}: entry {entry_id} not in local store")

        if not await self.connectivity.is_reachable():
            if local_applied:
                logger.info(f"{action}: saved locally, remote update skipped while offline")
                return
            raise OfflineUnavailable("Cannot update favorites while offline", operation=action)

        try:
            if flag:
                await self.gateway.add_favorite(user_id, entry_id)
            else:
                await self.gateway.remove_favorite(user_id, entry_id)
        except NetworkFault as e:
            self.connectivity.mark_unreachable(str(e))
            if local_applied:
                logger.warning(f"{action}: remote update failed, local change kept: {e}")
                return
            raise

    @error_boundary(default_return=False)
    async def is_favorited(self, entry_id: str) -> bool:
        """Favorite flag from the routed store; False on any failure."""
        if await self._uses_local():
            entry = await self.store.get_by_id(entry_id)
            return bool(entry and entry.is_favorite)

        user_id: Optional[str] = await self.identity.current_user_id()
        if not user_id or not await self.connectivity.is_reachable():
            return False
        return await self.gateway.is_favorite(user_id, entry_id)
