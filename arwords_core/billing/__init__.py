# =============================================================================
# arwords_core/billing/__init__.py
# In-app Purchase Integration
# =============================================================================

from .platform import BillingPlatform
from .verifier import PurchaseVerifier, TrustingVerifier, RevenueCatVerifier
from .purchase_bridge import PurchaseAccessBridge, PurchaseState

__all__ = [
    "BillingPlatform",
    "PurchaseVerifier",
    "TrustingVerifier",
    "RevenueCatVerifier",
    "PurchaseAccessBridge",
    "PurchaseState",
]
