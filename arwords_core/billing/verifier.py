# =============================================================================
# arwords_core/billing/verifier.py
# Purchase Receipt Verification
# =============================================================================
"""
Verifiers decide whether a purchase event is genuine before access is granted.

- TrustingVerifier accepts every receipt (development builds)
- RevenueCatVerifier looks the transaction up in the RevenueCat customer record
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Protocol

import httpx

from arwords_core.errors import NetworkFault, VerificationFault
from arwords_core.logging import get_logger
from arwords_core.models import PurchaseEvent

logger = get_logger(__name__)


class PurchaseVerifier(Protocol):
    async def verify(self, user_id: str, event: PurchaseEvent) -> bool: ...


class TrustingVerifier:
    """Accepts every purchase; use only where no receipt backend exists."""

    async def verify(self, user_id: str, event: PurchaseEvent) -> bool:
        logger.warning(f"Purchase for {event.product_id} accepted without receipt verification")
        return True


def transaction_in_customer_info(
    customer_info: Dict[str, Any],
    product_id: str,
    transaction_id: Optional[str],
) -> bool:
    """
    Check a RevenueCat customer record for a one-time purchase.

    RevenueCat keeps one-time purchases under subscriber.non_subscriptions,
    and sandbox/test purchases under subscriber.other_purchases.
    """
    subscriber = customer_info.get("subscriber") if isinstance(customer_info, dict) else None
    if not isinstance(subscriber, dict):
        return False

    for source in ("non_subscriptions", "other_purchases"):
        purchases = subscriber.get(source) or {}
        if not isinstance(purchases, dict):
            continue
        transactions = purchases.get(product_id)
        if not transactions:
            continue
        if transaction_id is None:
            return True
        if isinstance(transactions, dict):
            transactions = [transactions]
        for transaction in transactions:
            if isinstance(transaction, dict):
                # RevenueCat's own id and the store's id both identify the purchase
                known = {
                    transaction.get(key)
                    for key in ("id", "store_transaction_id", "transaction_id")
                }
            else:
                known = {transaction}
            if transaction_id in known:
                return True
    return False


class RevenueCatVerifier:
    """
    Verifies purchases against the RevenueCat REST API.

    Usage:
        verifier = RevenueCatVerifier(api_key=settings.revenuecat_api_key)
        ok = await verifier.verify(user_id, event)
    """

    TIMEOUT = 10.0

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.revenuecat.com/v1",
        platform: str = "android",
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise VerificationFault("RevenueCat API key is not configured")
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.platform = platform
        self._client = client

    async def fetch_customer_info(self, user_id: str) -> Dict[str, Any]:
        """Fetch the RevenueCat subscriber record for a user."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Platform": self.platform.lower(),
        }
        url = f"{self.api_url}/subscribers/{user_id}"
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, timeout=self.TIMEOUT)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, headers=headers, timeout=self.TIMEOUT)
        except httpx.HTTPError as e:
            raise NetworkFault(f"RevenueCat unreachable: {e}", operation="verify_purchase") from e

        if response.status_code != 200:
            raise NetworkFault(
                f"Failed to verify with RevenueCat: {response.status_code}",
                operation="verify_purchase",
                status=str(response.status_code),
            )
        return response.json()

    async def verify(self, user_id: str, event: PurchaseEvent) -> bool:
        customer_info = await self.fetch_customer_info(user_id)
        found = transaction_in_customer_info(customer_info, event.product_id, event.purchase_token)
        if not found:
            logger.error(
                f"Transaction not found in RevenueCat. Product ID: {event.product_id}, "
                f"Transaction ID: {event.purchase_token}"
            )
        return found
