# =============================================================================
# arwords_core/offline/connection_manager.py
# Connectivity Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors internet/Supabase connectivity.

Features:
- Explicit connectivity state instead of inferring it from exceptions
- On-demand checks plus an optional asyncio monitoring task
- Gateway failures downgrade the state immediately (mark_unreachable)
- Event callbacks for status changes
"""

from __future__ import annotations
import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from arwords_core.logging import get_logger

logger = get_logger(__name__)


class ConnectivityState(Enum):
    """Connection status states."""
    ONLINE = "online"           # Internet and backend reachable
    OFFLINE = "offline"         # No connectivity
    DEGRADED = "degraded"       # Internet OK but backend unavailable
    CHECKING = "checking"       # Currently checking status
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectivityState = ConnectivityState.UNKNOWN
    internet_available: bool = False
    backend_available: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connectivity oracle consulted before every remote call.

    Usage:
        manager = ConnectionManager(probe=gateway.ping)
        if await manager.is_reachable():
            # Use the remote gateway
        else:
            # Use the local store
    """

    _instance: Optional[ConnectionManager] = None
    _lock = threading.Lock()

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    RECHECK_INTERVAL = CHECK_INTERVAL_OFFLINE   # Back-off before an on-demand re-check
    CONNECTION_TIMEOUT = 5          # Timeout for connection tests
    INTERNET_HOSTS: Tuple[Tuple[str, int], ...] = (
        ("8.8.8.8", 53),            # Google DNS
        ("1.1.1.1", 53),            # Cloudflare DNS
        ("208.67.222.222", 53),     # OpenDNS
    )

    def __init__(
        self,
        probe: Optional[Callable[[], Awaitable[bool]]] = None,
        check_internet: bool = True,
        hosts: Optional[Sequence[Tuple[str, int]]] = None,
    ):
        """
        Args:
            probe: Coroutine returning True when the backend answers
            check_internet: Whether to test raw internet access before the probe
            hosts: Override for the internet check targets
        """
        self._probe = probe
        self._check_internet_first = check_internet
        self._hosts = tuple(hosts) if hosts else self.INTERNET_HOSTS
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_task: Optional[asyncio.Task] = None
        self._check_task: Optional[asyncio.Task] = None
        self._last_failure: Optional[datetime] = None
        self._pinned = False

    @classmethod
    def get_instance(cls, probe: Optional[Callable[[], Awaitable[bool]]] = None) -> ConnectionManager:
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ConnectionManager(probe=probe)
        return cls._instance

    def set_probe(self, probe: Callable[[], Awaitable[bool]]) -> None:
        self._probe = probe

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectivityState:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Last known status is ONLINE; does not trigger a check."""
        return self._state.status == ConnectivityState.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status == ConnectivityState.OFFLINE

    async def is_reachable(self) -> bool:
        """
        True when the backend can be called.

        Checks when the status is unknown, joins a check already in flight,
        and re-checks a non-online status once RECHECK_INTERVAL has passed
        since the last check or failure. A forced status is not re-checked.
        """
        if self._check_in_flight() or self._due_for_recheck():
            await self.check_connection()
        return self.is_online

    def _check_in_flight(self) -> bool:
        return self._check_task is not None and not self._check_task.done()

    def _due_for_recheck(self) -> bool:
        status = self._state.status
        if status == ConnectivityState.UNKNOWN:
            return True
        if self._pinned or status == ConnectivityState.ONLINE:
            return False
        moments = [t for t in (self._state.last_check, self._last_failure) if t is not None]
        if not moments:
            return True
        return datetime.now() - max(moments) >= timedelta(seconds=self.RECHECK_INTERVAL)

    async def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Concurrent callers share one in-flight check.

        Returns:
            Updated ConnectionState
        """
        if not self._check_in_flight():
            self._check_task = asyncio.get_running_loop().create_task(
                self._run_check(),
                name="ConnectionCheck",
            )
        return await asyncio.shield(self._check_task)

    async def _run_check(self) -> ConnectionState:
        self._pinned = False
        old_status = self._state.status
        self._state.status = ConnectivityState.CHECKING
        self._state.last_check = datetime.now()

        internet_ok = await self._check_internet() if self._check_internet_first else True
        self._state.internet_available = internet_ok

        backend_ok = False
        if internet_ok:
            backend_ok = await self._check_backend()
        self._state.backend_available = backend_ok

        if internet_ok and backend_ok:
            self._state.status = ConnectivityState.ONLINE
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._state.error_message = None
        elif internet_ok:
            self._state.status = ConnectivityState.DEGRADED
            self._state.consecutive_failures += 1
        else:
            self._state.status = ConnectivityState.OFFLINE
            self._state.consecutive_failures += 1

        if old_status != self._state.status:
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")
            self._notify_callbacks()

        return self._state

    async def _check_internet(self) -> bool:
        for host, port in self._hosts:
            try:
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port),
                    timeout=self.CONNECTION_TIMEOUT,
                )
                writer.close()
                return True
            except (OSError, asyncio.TimeoutError):
                continue
        return False

    async def _check_backend(self) -> bool:
        if self._probe is None:
            # No backend configured; internet access is all we can test
            return True
        try:
            return bool(await asyncio.wait_for(self._probe(), timeout=self.CONNECTION_TIMEOUT))
        except Exception as e:
            self._state.error_message = str(e)
            logger.debug(f"Backend check failed: {e}")
            return False

    def mark_unreachable(self, reason: Optional[str] = None) -> None:
        """Record a failed remote call; callers stop routing remotely until the next check."""
        if self._state.status in (ConnectivityState.OFFLINE, ConnectivityState.DEGRADED):
            return
        self._pinned = False
        self._last_failure = datetime.now()
        self._state.status = ConnectivityState.DEGRADED
        self._state.backend_available = False
        self._state.consecutive_failures += 1
        self._state.error_message = reason
        logger.warning(f"Backend marked unreachable: {reason}")
        self._notify_callbacks()

    def force_state(self, status: ConnectivityState) -> None:
        """Set the status directly (user preference); holds until the next explicit check."""
        self._pinned = True
        if self._state.status == status:
            return
        self._state.status = status
        online = status == ConnectivityState.ONLINE
        self._state.internet_available = online or status == ConnectivityState.DEGRADED
        self._state.backend_available = online
        if online:
            self._state.last_online = datetime.now()
        self._notify_callbacks()
        logger.info(f"Connection status forced to {status.value}")

    def force_offline(self) -> None:
        """Force offline mode."""
        self.force_state(ConnectivityState.OFFLINE)

    # =========================================================================
    # MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background monitoring on the running event loop."""
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.get_running_loop().create_task(
            self._monitoring_loop(),
            name="ConnectionMonitor",
        )
        logger.debug("Connection monitoring started")

    async def stop_monitoring(self) -> None:
        if self._monitor_task is None:
            return
        self._monitor_task.cancel()
        try:
            await self._monitor_task
        except asyncio.CancelledError:
            pass
        self._monitor_task = None
        logger.debug("Connection monitoring stopped")

    async def _monitoring_loop(self) -> None:
        while True:
            interval = (
                self.CHECK_INTERVAL_ONLINE
                if self.is_online
                else self.CHECK_INTERVAL_OFFLINE
            )
            await asyncio.sleep(interval)
            try:
                await self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register a callback for connection status changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "internet": self._state.internet_available,
            "backend": self._state.backend_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }


# Singleton accessor
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Get the global ConnectionManager instance."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager.get_instance()
    return _connection_manager
