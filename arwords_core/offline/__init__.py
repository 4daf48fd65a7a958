# =============================================================================
# arwords_core/offline/__init__.py
# Offline-First Dictionary Access
# =============================================================================
"""
Offline-First Architecture Module

Premium users download the whole dictionary once and read it locally from
then on; everyone else reads the remote store while online.

Architecture:
------------
    ┌───────────────────────────────────────────────┐
    │    QueryRouter          FavoritesReconciler   │
    │  (reads: local|remote)  (writes: local, then  │
    │                          remote)              │
    └───────────────────────────────────────────────┘
               │                       │
    ┌──────────┴───────┐    ┌──────────┴─────────┐
    │ EntitlementCache │    │ ConnectionManager  │
    │ profile > prefs  │    │ (explicit state)   │
    │ > remote         │    └────────────────────┘
    └──────────────────┘
               │
    ┌────────┐   ContentSyncEngine   ┌──────────┐
    │Supabase│ ────────────────────► │  SQLite  │
    │(Cloud) │   full refresh        │ (Local)  │
    └────────┘                       └──────────┘

Usage:
------
from arwords_core.offline import QueryRouter

page = await router.search("book")
"""

from arwords_core.offline.connection_manager import (
    ConnectionManager,
    ConnectivityState,
    get_connection_manager,
)

from arwords_core.offline.local_store import (
    LocalStore,
    StoreWriter,
    get_local_store,
)

from arwords_core.offline.preferences import PreferenceStore

from arwords_core.offline.entitlement_cache import EntitlementCache

from arwords_core.offline.sync_engine import (
    ContentSyncEngine,
    SyncPhase,
    SyncReport,
    SyncState,
)

from arwords_core.offline.query_router import QueryRouter

from arwords_core.offline.favorites import FavoritesReconciler

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectivityState",
    "get_connection_manager",
    # Local Store
    "LocalStore",
    "StoreWriter",
    "get_local_store",
    "PreferenceStore",
    # Entitlements
    "EntitlementCache",
    # Sync Engine
    "ContentSyncEngine",
    "SyncPhase",
    "SyncReport",
    "SyncState",
    # Reads and favorites
    "QueryRouter",
    "FavoritesReconciler",
]
