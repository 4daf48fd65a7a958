# =============================================================================
# arwords_core/billing/purchase_bridge.py
# Purchase-to-Access Bridge
# =============================================================================
"""
PurchaseAccessBridge - turns platform purchase events into offline access.

Features:
- Bounded waits on store availability, product and restore queries
- Receipt verification before any entitlement write
- Remote grant, then lightweight and structured cache tiers, then download
- Consumable purchases consumed after granting; restored ones without re-grant
- Every event needing completion is completed exactly once
- Listener callbacks receive PurchaseUpdate messages for the UI

Per-purchase states:
    IDLE -> AWAITING_STORE_RESPONSE -> VERIFYING -> GRANTING -> CONSUMING -> DONE
                                               \\-> DENIED
"""

from __future__ import annotations
import asyncio
from collections import OrderedDict
from enum import Enum
from typing import Callable, List, Optional

from arwords_core.auth.identity import IdentityProvider
from arwords_core.billing.platform import BillingPlatform
from arwords_core.billing.verifier import PurchaseVerifier
from arwords_core.data.gateway import RemoteGateway
from arwords_core.errors import AuthenticationError, TimeoutFault, VerificationFault
from arwords_core.logging import LogContext, get_logger
from arwords_core.models import (
    Product,
    PurchaseEvent,
    PurchaseStatus,
    PurchaseUpdate,
    PurchaseUpdateStatus,
)
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.sync_engine import ContentSyncEngine

logger = get_logger(__name__)

DEFAULT_PRODUCT_ID = "premium_access"

MSG_VERIFYING = "Verifying purchase..."
MSG_SUCCESS = "Purchase successful! You can now download the dictionary."
MSG_CANCELLED = "Purchase cancelled"
MSG_PENDING = "Purchase pending..."
MSG_STORE_UNAVAILABLE = "Store is not available on this device"
MSG_PRODUCT_NOT_FOUND = "Premium access is not available in the store"
MSG_VERIFICATION_FAILED = "Purchase verification failed"

# Recent tokens kept for duplicate detection
TOKEN_HISTORY = 256


def _remember(tokens: OrderedDict, key: str) -> None:
    tokens[key] = None
    tokens.move_to_end(key)
    while len(tokens) > TOKEN_HISTORY:
        tokens.popitem(last=False)


class PurchaseState(Enum):
    """Bridge state for the purchase currently in progress."""
    IDLE = "idle"
    AWAITING_STORE_RESPONSE = "awaiting_store_response"
    VERIFYING = "verifying"
    GRANTING = "granting"
    CONSUMING = "consuming"
    DONE = "done"
    DENIED = "denied"


class PurchaseAccessBridge:
    """
    Connects the platform store to the entitlement tiers.

    Usage:
        bridge = PurchaseAccessBridge(platform, verifier, identity, gateway, entitlements, engine)
        bridge.register_listener(show_update)
        if await bridge.initialize():
            listener = asyncio.create_task(bridge.listen())
            await bridge.buy()
    """

    def __init__(
        self,
        platform: BillingPlatform,
        verifier: PurchaseVerifier,
        identity: IdentityProvider,
        gateway: RemoteGateway,
        entitlements: EntitlementCache,
        sync_engine: ContentSyncEngine,
        product_id: str = DEFAULT_PRODUCT_ID,
        store_query_timeout: float = 15.0,
        billing_connect_timeout: float = 10.0,
    ):
        self.platform = platform
        self.verifier = verifier
        self.identity = identity
        self.gateway = gateway
        self.entitlements = entitlements
        self.sync_engine = sync_engine
        self.product_id = product_id
        self.store_query_timeout = store_query_timeout
        self.billing_connect_timeout = billing_connect_timeout

        self._state = PurchaseState.IDLE
        self._product: Optional[Product] = None
        self._listeners: List[Callable[[PurchaseUpdate], None]] = []
        self._granted_tokens: OrderedDict[str, None] = OrderedDict()
        self._completed_tokens: OrderedDict[str, None] = OrderedDict()

    @property
    def state(self) -> PurchaseState:
        return self._state

    @property
    def product(self) -> Optional[Product]:
        return self._product

    def _set_state(self, state: PurchaseState) -> None:
        logger.debug(f"Purchase state: {self._state.value} -> {state.value}")
        self._state = state

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def register_listener(self, listener: Callable[[PurchaseUpdate], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unregister_listener(self, listener: Callable[[PurchaseUpdate], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(
        self,
        status: PurchaseUpdateStatus,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        update = PurchaseUpdate(status=status, message=message, error_code=error_code)
        for listener in self._listeners:
            try:
                listener(update)
            except Exception as e:
                logger.error(f"Error in purchase listener: {e}")

    def _emit_error(self, message: str, error_code: Optional[str] = None) -> None:
        self._emit(PurchaseUpdateStatus.ERROR, message, error_code)

    # =========================================================================
    # STORE QUERIES
    # =========================================================================

    async def _bounded(self, awaitable, seconds: float, operation: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=seconds)
        except asyncio.TimeoutError:
            fault = TimeoutFault(
                f"{operation} timed out after {seconds:g}s",
                operation=operation,
                seconds=seconds,
            )
            self._emit_error(fault.message, fault.code)
            raise fault from None

    async def initialize(self) -> bool:
        """
        Check store availability and load the product.

        Returns:
            True when the product can be bought

        Raises:
            TimeoutFault: The store did not answer in time
        """
        available = await self._bounded(
            self.platform.is_available(),
            self.billing_connect_timeout,
            "billing_connect",
        )
        if not available:
            logger.warning("Billing store unavailable")
            self._emit_error(MSG_STORE_UNAVAILABLE)
            return False
        return await self.load_product() is not None

    async def load_product(self) -> Optional[Product]:
        """Query product details; emits an error update when the product is unknown."""
        product = await self._bounded(
            self.platform.query_product(self.product_id),
            self.store_query_timeout,
            "query_product",
        )
        if product is None:
            logger.error(f"Product not found: {self.product_id}")
            self._emit_error(MSG_PRODUCT_NOT_FOUND)
            return None
        self._product = product
        logger.info(f"Loaded product {product.id} ({product.price})")
        return product

    async def buy(self) -> bool:
        """Start the platform purchase flow; the outcome arrives as an event."""
        if self._product is None and await self.load_product() is None:
            return False

        self._set_state(PurchaseState.AWAITING_STORE_RESPONSE)
        try:
            launched = await self.platform.purchase(self._product)
        except Exception as e:
            logger.error(f"Could not start purchase: {e}")
            self._set_state(PurchaseState.IDLE)
            self._emit_error(f"Could not start purchase: {e}")
            return False

        if not launched:
            self._set_state(PurchaseState.IDLE)
            self._emit_error("Could not start purchase")
        return bool(launched)

    async def restore(self) -> None:
        """Ask the store to replay previous purchases as restored events."""
        await self._bounded(
            self.platform.restore_purchases(),
            self.store_query_timeout,
            "restore_purchases",
        )

    async def listen(self) -> None:
        """Handle purchase events until the platform stream ends."""
        try:
            async for event in self.platform.purchase_events():
                await self.handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Purchase stream error: {e}")
            self._emit_error(f"Purchase stream error: {e}")

    # =========================================================================
    # EVENT HANDLING
    # =========================================================================

    async def handle_event(self, event: PurchaseEvent) -> None:
        """Process one purchase event; never raises."""
        try:
            if event.product_id != self.product_id:
                logger.debug(f"Ignoring event for unrelated product {event.product_id}")
            elif event.status == PurchaseStatus.PENDING:
                self._set_state(PurchaseState.AWAITING_STORE_RESPONSE)
                self._emit(PurchaseUpdateStatus.PENDING, MSG_PENDING)
            elif event.status == PurchaseStatus.ERROR:
                self._set_state(PurchaseState.IDLE)
                self._emit_error(event.error or "Purchase failed")
            elif event.status == PurchaseStatus.CANCELED:
                self._set_state(PurchaseState.IDLE)
                self._emit_error(MSG_CANCELLED)
            elif event.status == PurchaseStatus.RESTORED:
                # Consumables are never re-granted from a restore
                logger.info("Restored purchase consumed without re-granting")
                await self._consume(event)
            elif event.status == PurchaseStatus.PURCHASED:
                await self._process_purchase(event)
        except Exception as e:
            logger.error(f"Purchase handling failed: {e}")
            if self._state != PurchaseState.DENIED:
                self._set_state(PurchaseState.IDLE)
            self._emit_error(getattr(e, "message", str(e)), getattr(e, "code", None))
        finally:
            if event.pending_complete:
                await self._complete_once(event)

    async def _process_purchase(self, event: PurchaseEvent) -> None:
        token = event.purchase_token
        if token and token in self._granted_tokens:
            logger.info("Purchase already granted; not granting again")
            await self._consume(event)
            return

        self._set_state(PurchaseState.VERIFYING)
        self._emit(PurchaseUpdateStatus.PENDING, MSG_VERIFYING)

        user_id = await self.identity.current_user_id()
        if not user_id:
            raise AuthenticationError("Sign in before purchasing")

        if not await self.verifier.verify(user_id, event):
            self._set_state(PurchaseState.DENIED)
            raise VerificationFault(MSG_VERIFICATION_FAILED, product_id=event.product_id)

        self._set_state(PurchaseState.GRANTING)
        with LogContext(logger, "Granting offline access"):
            record = await self.gateway.grant_entitlement(user_id)
            await self.entitlements.cache_access(True)
            await self.entitlements.store_record(record)
        if token:
            _remember(self._granted_tokens, token)

        try:
            await self.sync_engine.sync_all(force=False)
        except Exception as e:
            logger.warning(f"Access granted but dictionary download failed: {e}")

        self._set_state(PurchaseState.CONSUMING)
        await self._consume(event)

        self._set_state(PurchaseState.DONE)
        self._emit(PurchaseUpdateStatus.PURCHASED, MSG_SUCCESS)

    async def _consume(self, event: PurchaseEvent) -> None:
        try:
            await self.platform.consume(event)
        except Exception as e:
            logger.error(f"Failed to consume purchase: {e}")

    async def _complete_once(self, event: PurchaseEvent) -> None:
        key = event.purchase_token or f"{event.product_id}:{id(event)}"
        if key in self._completed_tokens:
            return
        _remember(self._completed_tokens, key)
        try:
            await self.platform.complete_purchase(event)
        except Exception as e:
            logger.error(f"Failed to complete purchase: {e}")
