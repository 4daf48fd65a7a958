# =============================================================================
# arwords_core/billing/platform.py
# Platform Store Contract
# =============================================================================

from __future__ import annotations
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from arwords_core.models import Product, PurchaseEvent


@runtime_checkable
class BillingPlatform(Protocol):
    """
    The device's app store, as seen by the purchase bridge.

    Store internals (receipts, signing, refunds) stay behind this interface.
    """

    async def is_available(self) -> bool: ...

    async def query_product(self, product_id: str) -> Optional[Product]: ...

    async def purchase(self, product: Product) -> bool: ...

    def purchase_events(self) -> AsyncIterator[PurchaseEvent]: ...

    async def consume(self, event: PurchaseEvent) -> None: ...

    async def complete_purchase(self, event: PurchaseEvent) -> None: ...

    async def restore_purchases(self) -> None: ...
