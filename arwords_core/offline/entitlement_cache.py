# =============================================================================
# arwords_core/offline/entitlement_cache.py
# Two-tier Cache of the Offline Dictionary Entitlement
# =============================================================================
"""
EntitlementCache - answers "may this user use the offline dictionary?"

Lookup order:
    1. Structured tier: the `profile` table in the local SQLite store
    2. Lightweight tier: a per-user flag in the preferences file
    3. Remote profile, only when the backend is reachable

Hits in a faster tier are written through to the slower-to-read ones.
Any failure answers False and caches nothing, so an outage never
produces a cached denial and a cached grant only ever comes from a
successful remote confirmation or a verified purchase.
"""

from __future__ import annotations
from typing import Optional

from arwords_core.auth.identity import IdentityProvider
from arwords_core.data.gateway import RemoteGateway
from arwords_core.logging import get_logger
from arwords_core.models import EntitlementRecord
from arwords_core.offline.connection_manager import ConnectionManager
from arwords_core.offline.local_store import LocalStore
from arwords_core.offline.preferences import PreferenceStore

logger = get_logger(__name__)

ACCESS_KEY_PREFIX = "has_offline_dictionary_access"


def access_key(user_id: str) -> str:
    return f"{ACCESS_KEY_PREFIX}:{user_id}"


class EntitlementCache:
    """Cached, fail-closed access check."""

    def __init__(
        self,
        identity: IdentityProvider,
        store: LocalStore,
        preferences: PreferenceStore,
        gateway: RemoteGateway,
        connectivity: ConnectionManager,
    ):
        self.identity = identity
        self.store = store
        self.preferences = preferences
        self.gateway = gateway
        self.connectivity = connectivity

    async def check_access(self) -> bool:
        """Resolve the current user's access flag; never raises."""
        try:
            user_id = await self.identity.current_user_id()
        except Exception as e:
            logger.warning(f"Could not resolve current user: {e}")
            return False
        if not user_id:
            return False

        try:
            profile = await self.store.get_profile(user_id)
            if profile is not None:
                active = profile.is_active()
                await self.preferences.set_bool(access_key(user_id), active)
                return active

            cached = await self.preferences.get_bool(access_key(user_id))
            if cached is not None:
                return cached

            if not await self.connectivity.is_reachable():
                logger.info("Access unknown and backend unreachable; denying")
                return False

            record = await self.gateway.fetch_entitlement(user_id)
            if record is None:
                return False
            await self.store_record(record)
            return record.is_active()

        except Exception as e:
            logger.warning(f"Access check failed, denying: {e}")
            return False

    async def refresh(self) -> Optional[EntitlementRecord]:
        """Read the remote profile and write it through both tiers."""
        user_id = await self.identity.current_user_id()
        if not user_id:
            return None
        record = await self.gateway.fetch_entitlement(user_id)
        if record is not None:
            await self.store_record(record)
        return record

    async def store_record(self, record: EntitlementRecord) -> None:
        """Write an authoritative record to the lightweight then structured tier."""
        await self.preferences.set_bool(access_key(record.user_id), record.is_active())
        await self.store.save_profile(record)

    async def cache_access(self, flag: bool) -> None:
        """Set the lightweight flag for the current user."""
        user_id = await self.identity.current_user_id()
        if not user_id:
            logger.warning("cache_access called without a signed-in user")
            return
        await self.preferences.set_bool(access_key(user_id), flag)

    async def invalidate(self) -> None:
        """Clear the lightweight tier for every user."""
        removed = await self.preferences.remove_prefix(ACCESS_KEY_PREFIX)
        logger.debug(f"Invalidated {removed} cached access flag(s)")

    async def wipe(self) -> None:
        """Clear the structured tier (explicit data wipe)."""
        await self.store.clear_profiles()
