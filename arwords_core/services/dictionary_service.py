# =============================================================================
# arwords_core/services/dictionary_service.py
# UI-facing Dictionary Service
# =============================================================================
"""
DictionaryService - single entry point for the presentation layer.

Every method returns a ServiceResult; failures carry a UserNotice with the
message, whether a retry makes sense, and an optional call to action.
"""

from __future__ import annotations
from typing import Callable, List, Optional

from arwords_core.auth.account import AccountService
from arwords_core.auth.identity import IdentityProvider, SupabaseIdentity
from arwords_core.billing.platform import BillingPlatform
from arwords_core.billing.purchase_bridge import PurchaseAccessBridge
from arwords_core.billing.verifier import PurchaseVerifier, RevenueCatVerifier, TrustingVerifier
from arwords_core.config import Settings, load_settings
from arwords_core.data.gateway import RemoteGateway
from arwords_core.data.supabase_client import get_cached_supabase_client, reset_supabase_client
from arwords_core.data.supabase_gateway import SupabaseGateway
from arwords_core.logging import setup_logging
from arwords_core.models import PartOfSpeech
from arwords_core.offline.connection_manager import ConnectionManager, get_connection_manager
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.favorites import FavoritesReconciler
from arwords_core.offline.local_store import LocalStore, get_local_store
from arwords_core.offline.preferences import PreferenceStore
from arwords_core.offline.query_router import QueryRouter
from arwords_core.offline.sync_engine import ContentSyncEngine
from arwords_core.services.base_service import BaseService, ServiceResult


class DictionaryService(BaseService):
    """
    Facade over routing, favorites, downloads and account state.

    Usage:
        service = await build_dictionary_service()
        result = await service.search("book")
        if result:
            show(result.data.items)
        else:
            show_error(result.notice)
    """

    def __init__(
        self,
        identity: IdentityProvider,
        store: LocalStore,
        gateway: RemoteGateway,
        connectivity: ConnectionManager,
        entitlements: EntitlementCache,
        sync_engine: ContentSyncEngine,
        router: QueryRouter,
        favorites: FavoritesReconciler,
        accounts: AccountService,
    ):
        super().__init__()
        self.identity = identity
        self.store = store
        self.gateway = gateway
        self.connectivity = connectivity
        self.entitlements = entitlements
        self.sync_engine = sync_engine
        self.router = router
        self.favorites = favorites
        self.accounts = accounts
        self.notifications: List[str] = []

    def notify(self, message: str) -> None:
        """Collect user-facing notifications from the sync engine and router."""
        self.logger.info(f"Notification: {message}")
        self.notifications.append(message)

    def drain_notifications(self) -> List[str]:
        pending, self.notifications = self.notifications, []
        return pending

    def status_display(self) -> dict:
        """Connection and download status for UI display."""
        return {
            "connection": self.connectivity.get_status_display(),
            "sync": self.sync_engine.get_status_display(),
        }

    # =========================================================================
    # READS
    # =========================================================================

    async def search(
        self,
        term: str,
        page: int = 1,
        page_size: int = QueryRouter.DEFAULT_PAGE_SIZE,
        category: Optional[PartOfSpeech] = None,
    ) -> ServiceResult:
        return await self.run(f"Search '{term}'", self.router.search, term, page, page_size, category)

    async def word_details(self, entry_id: str) -> ServiceResult:
        return await self.run(f"Load entry {entry_id}", self.router.get_by_id, entry_id)

    async def favorites_list(self) -> ServiceResult:
        return await self.run("Load favorites", self.router.list_favorites)

    # =========================================================================
    # FAVORITES
    # =========================================================================

    async def set_favorite(self, entry_id: str, flag: bool) -> ServiceResult:
        toggle = self.favorites.add_favorite if flag else self.favorites.remove_favorite
        return await self.run(f"Set favorite {entry_id}={flag}", toggle, entry_id)

    async def is_favorited(self, entry_id: str) -> bool:
        return await self.favorites.is_favorited(entry_id)

    # =========================================================================
    # ACCESS AND DOWNLOAD
    # =========================================================================

    async def has_premium_access(self) -> bool:
        return await self.entitlements.check_access()

    async def download_dictionary(self, force: bool = False) -> ServiceResult:
        def progress(fraction: float) -> None:
            self._update_progress(int(fraction * 100), "Downloading dictionary")

        return await self.run(
            "Download dictionary",
            self.sync_engine.sync_all,
            on_progress=progress,
            force=force,
        )

    # =========================================================================
    # ACCOUNT
    # =========================================================================

    async def register(self, email: str, password: str) -> ServiceResult:
        return await self.run("Register", self.accounts.register, email, password)

    async def login(self, email: str, password: str) -> ServiceResult:
        return await self.run("Login", self.accounts.login, email, password)

    async def logout(self) -> ServiceResult:
        return await self.run("Logout", self.accounts.logout)

    async def delete_account(self) -> ServiceResult:
        return await self.run("Delete account", self.accounts.delete_account)

    async def close(self) -> None:
        await self.connectivity.stop_monitoring()
        await self.store.close()
        reset_supabase_client()


def assemble_dictionary_service(
    identity: IdentityProvider,
    store: LocalStore,
    gateway: RemoteGateway,
    preferences: PreferenceStore,
    connectivity: ConnectionManager,
    notifier: Optional[Callable[[str], None]] = None,
) -> DictionaryService:
    """Wire the offline components around the given collaborators."""
    entitlements = EntitlementCache(identity, store, preferences, gateway, connectivity)
    sync_engine = ContentSyncEngine(identity, store, gateway, entitlements, connectivity)
    router = QueryRouter(identity, store, gateway, entitlements, connectivity)
    service = DictionaryService(
        identity=identity,
        store=store,
        gateway=gateway,
        connectivity=connectivity,
        entitlements=entitlements,
        sync_engine=sync_engine,
        router=router,
        favorites=FavoritesReconciler(identity, store, gateway, entitlements, connectivity),
        accounts=AccountService(identity, store, gateway, entitlements),
    )
    sync_engine.notifier = notifier or service.notify
    router.notifier = notifier or service.notify
    return service


async def build_dictionary_service(
    settings: Optional[Settings] = None,
    monitor: bool = False,
) -> DictionaryService:
    """
    Build the service against Supabase and the local SQLite file.

    Billing is wired separately because the platform store lives outside
    this package; see PurchaseAccessBridge.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level, log_to_file=settings.log_to_file)

    client = await get_cached_supabase_client(settings)
    gateway = SupabaseGateway(client)
    connectivity = get_connection_manager()
    connectivity.set_probe(gateway.ping)
    store = get_local_store(settings.db_path, settings.sync_batch_size)
    await store.ensure_schema()

    service = assemble_dictionary_service(
        identity=SupabaseIdentity(client),
        store=store,
        gateway=gateway,
        preferences=PreferenceStore(settings.preferences_path),
        connectivity=connectivity,
    )
    await connectivity.check_connection()
    if monitor:
        connectivity.start_monitoring()
    return service


def build_purchase_bridge(
    service: DictionaryService,
    platform: BillingPlatform,
    settings: Optional[Settings] = None,
    verifier: Optional[PurchaseVerifier] = None,
) -> PurchaseAccessBridge:
    """
    Attach a platform store to an assembled service.

    RevenueCat verification is used when an API key is configured.
    """
    settings = settings or Settings()
    if verifier is None:
        if settings.revenuecat_api_key:
            verifier = RevenueCatVerifier(settings.revenuecat_api_key, settings.revenuecat_api_url)
        else:
            verifier = TrustingVerifier()
    return PurchaseAccessBridge(
        platform=platform,
        verifier=verifier,
        identity=service.identity,
        gateway=service.gateway,
        entitlements=service.entitlements,
        sync_engine=service.sync_engine,
        product_id=settings.product_id,
        store_query_timeout=settings.store_query_timeout,
        billing_connect_timeout=settings.billing_connect_timeout,
    )
