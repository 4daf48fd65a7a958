# =============================================================================
# arwords_core/offline/sync_engine.py
# Full-refresh Dictionary Download
# =============================================================================
"""
ContentSyncEngine - downloads the remote dictionary into the local store.

Features:
- Entitlement gate before any remote read
- Single in-flight download; a second request returns immediately
- Sequential batches, one transaction each, with progress after every batch
- Stale-row pruning and a row-count verification pass
- Sync state tracking and event callbacks

Phases:
    IDLE -> CHECKING_ENTITLEMENT -> DENIED
                                 -> FETCHING -> WRITING -> VERIFYING -> DONE
    any phase may end in FAILED
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Set

from arwords_core.auth.identity import IdentityProvider
from arwords_core.data.gateway import RemoteGateway
from arwords_core.errors import AccessDenied, NetworkFault, StorageFault
from arwords_core.logging import LogContext, get_logger
from arwords_core.models import Entry
from arwords_core.offline.connection_manager import ConnectionManager
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.local_store import LocalStore

logger = get_logger(__name__)

SUCCESS_MESSAGE = "Dictionary downloaded successfully"


class SyncPhase(Enum):
    """Download phases."""
    IDLE = "idle"
    CHECKING_ENTITLEMENT = "checking_entitlement"
    DENIED = "denied"
    FETCHING = "fetching"
    WRITING = "writing"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncState:
    """Current sync state."""
    phase: SyncPhase = SyncPhase.IDLE
    is_syncing: bool = False
    progress: float = 0.0
    total: int = 0
    written: int = 0
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class SyncReport:
    """Outcome of a sync_all call."""
    status: str                 # completed, skipped, already_running
    total: int = 0
    written: int = 0
    pruned: int = 0


class ContentSyncEngine:
    """
    Full-refresh download of dictionary content.

    Usage:
        engine = ContentSyncEngine(identity, store, gateway, entitlements, connectivity)
        report = await engine.sync_all(on_progress=lambda p: print(f"{p:.0%}"))
    """

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
        self._state = SyncState()
        self._callbacks: List[Callable[[SyncState], None]] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def batch_size(self) -> int:
        return self.store.batch_size

    def _set_phase(self, phase: SyncPhase) -> None:
        self._state.phase = phase
        logger.debug(f"Sync phase: {phase.value}")
        self._notify_callbacks()

    async def sync_all(
        self,
        on_progress: Optional[Callable[[float], None]] = None,
        force: bool = False,
    ) -> SyncReport:
        """
        Download every entry into the local store.

        Args:
            on_progress: Called with the completed fraction after each batch
            force: Re-download even when a valid local copy exists

        Raises:
            AccessDenied: The user has no offline entitlement
            NetworkFault: Remote unreachable or returned no entries
            StorageFault: A batch failed or verification found a count mismatch
        """
        if self._state.is_syncing:
            logger.info("Dictionary download already in progress")
            return SyncReport(status="already_running")

        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        self._state.progress = 0.0
        self._state.written = 0
        self._state.error_message = None

        try:
            self._set_phase(SyncPhase.CHECKING_ENTITLEMENT)
            if not await self.entitlements.check_access():
                self._set_phase(SyncPhase.DENIED)
                raise AccessDenied("Premium access required to download the dictionary")

            if not force and await self.store.has_local_copy():
                total = await self.store.row_count()
                logger.info(f"Local dictionary present ({total} entries), skipping download")
                self._set_phase(SyncPhase.DONE)
                return SyncReport(status="skipped", total=total)

            if not await self.connectivity.is_reachable():
                raise NetworkFault("Cannot download the dictionary while offline", operation="sync_all")

            with LogContext(logger, "Downloading dictionary"):
                report = await self._download(on_progress)

            await self.entitlements.cache_access(True)
            self._state.last_sync_success = datetime.now()
            self._set_phase(SyncPhase.DONE)
            self._notify_user(SUCCESS_MESSAGE)
            return report

        except AccessDenied:
            raise
        except Exception as e:
            self._state.error_message = str(e)
            self._set_phase(SyncPhase.FAILED)
            self._notify_user("Dictionary download failed. Please try again.")
            raise

        finally:
            self._state.is_syncing = False
            self._notify_callbacks()

    async def _fetch(self) -> tuple[List[Entry], Set[str]]:
        self._set_phase(SyncPhase.FETCHING)
        try:
            entries = await self.gateway.fetch_all_entries()
            user_id = await self.identity.current_user_id()
            favorite_ids = await self.gateway.fetch_favorite_ids(user_id) if user_id else set()
        except NetworkFault as e:
            self.connectivity.mark_unreachable(str(e))
            raise

        if not entries:
            raise NetworkFault("Remote returned no dictionary entries", operation="fetch_all_entries")
        return entries, favorite_ids

    async def _download(self, on_progress: Optional[Callable[[float], None]]) -> SyncReport:
        entries, favorite_ids = await self._fetch()
        entries = [entry.with_favorite(entry.id in favorite_ids) for entry in entries]
        total = len(entries)
        self._state.total = total
        logger.info(f"Writing {total} entries in batches of {self.batch_size}")

        self._set_phase(SyncPhase.WRITING)
        async with self.store.writer() as writer:
            for start in range(0, total, self.batch_size):
                batch = entries[start:start + self.batch_size]
                self._state.written += await writer.upsert_batch(batch)
                self._state.progress = self._state.written / total
                self._report_progress(on_progress)
                self._notify_callbacks()

            self._set_phase(SyncPhase.VERIFYING)
            pruned = await writer.prune(entry.id for entry in entries)
            if pruned:
                logger.info(f"Pruned {pruned} entries no longer present remotely")
            stored = await writer.row_count()

        if stored != total:
            raise StorageFault(
                f"Verification failed: expected {total} entries, found {stored}",
                operation="verify",
            )

        return SyncReport(status="completed", total=total, written=self._state.written, pruned=pruned)

    def _report_progress(self, on_progress: Optional[Callable[[float], None]]) -> None:
        if on_progress is None:
            return
        try:
            on_progress(self._state.progress)
        except Exception as e:
            logger.error(f"Error in progress callback: {e}")

    def _notify_user(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(message)
        except Exception as e:
            logger.error(f"Error in sync notifier: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> dict:
        """Get sync status for UI display."""
        return {
            "phase": self._state.phase.value,
            "is_syncing": self._state.is_syncing,
            "progress": round(self._state.progress, 4),
            "total": self._state.total,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "error": self._state.error_message,
        }
