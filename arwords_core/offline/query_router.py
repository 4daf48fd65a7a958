# =============================================================================
# arwords_core/offline/query_router.py
# Local-or-Remote Read Routing
# =============================================================================
"""
QueryRouter - sends each dictionary read to exactly one source.

    premium and local copy  -> local store only, even when online
    otherwise, reachable    -> remote gateway
    otherwise               -> OfflineUnavailable
"""

from __future__ import annotations
from typing import Callable, List, Optional

from arwords_core.auth.identity import IdentityProvider
from arwords_core.data.gateway import RemoteGateway
from arwords_core.errors import AuthenticationError, NetworkFault, OfflineUnavailable
from arwords_core.logging import get_logger
from arwords_core.models import Entry, Page, PartOfSpeech, validate_page
from arwords_core.offline.connection_manager import ConnectionManager
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.local_store import LocalStore

logger = get_logger(__name__)

DOWNLOAD_ADVISORY = "For faster searches, download the dictionary from your profile."

LOCAL = "local"
REMOTE = "remote"


class QueryRouter:
    """Routes search, lookup and favorites reads."""

    DEFAULT_PAGE_SIZE = 20

    def __init__(
        self,
        identity: IdentityProvider,
        store: LocalStore,
        gateway: RemoteGateway,
        entitlements: EntitlementCache,
        connectivity: ConnectionManager,
        notifier: Optional[Callable[[str], None]] = None,
    ):
        self.identity = identity
        self.store = store
        self.gateway = gateway
        self.entitlements = entitlements
        self.connectivity = connectivity
        self.notifier = notifier

    async def _route(self, operation: str) -> str:
        premium = await self.entitlements.check_access()
        has_local = await self.store.has_local_copy()

        if premium and has_local:
            return LOCAL
        if premium:
            self._advise(DOWNLOAD_ADVISORY)
        if await self.connectivity.is_reachable():
            return REMOTE
        raise OfflineUnavailable(
            "No connection and no downloaded dictionary",
            operation=operation,
        )

    def _advise(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(message)
        except Exception as e:
            logger.error(f"Error in router notifier: {e}")

    async def _remote(self, call):
        try:
            return await call
        except NetworkFault as e:
            self.connectivity.mark_unreachable(str(e))
            raise

    async def search(
        self,
        term: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        category: Optional[PartOfSpeech] = None,
    ) -> Page[Entry]:
        """
        Paginated substring search.

        Args:
            term: Text matched against the English term or Arabic script
            page: 1-indexed page number
            page_size: Entries per page
            category: Optional part-of-speech filter

        Raises:
            ValueError: page or page_size below 1
            OfflineUnavailable: No local copy and the backend is unreachable
        """
        validate_page(page, page_size)
        if not term or not term.strip():
            return Page.empty(page, page_size)

        if await self._route("search") == LOCAL:
            matches = await self.store.search(term, category)
            return Page.slice(matches, page, page_size)

        return await self._remote(
            self.gateway.search_entries(term, page, page_size, category)
        )

    async def get_by_id(self, entry_id: str) -> Optional[Entry]:
        if await self._route("get_by_id") == LOCAL:
            return await self.store.get_by_id(entry_id)

        entry = await self._remote(self.gateway.get_entry(entry_id))
        if entry is None:
            return None
        user_id = await self.identity.current_user_id()
        if user_id:
            favorite = await self._remote(self.gateway.is_favorite(user_id, entry_id))
            entry = entry.with_favorite(favorite)
        return entry

    async def list_favorites(self) -> List[Entry]:
        if await self._route("list_favorites") == LOCAL:
            return await self.store.list_favorites()

        user_id = await self.identity.current_user_id()
        if not user_id:
            raise AuthenticationError("Sign in to see your favorites")
        return await self._remote(self.gateway.list_favorite_entries(user_id))
