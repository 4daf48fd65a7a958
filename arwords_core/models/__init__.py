# =============================================================================
# arwords_core/models/__init__.py
# Typed Records
# =============================================================================

from .entry import PartOfSpeech, FrequencyTag, Variant, Entry, FavoriteLink
from .entitlement import EntitlementRecord
from .page import Page, validate_page
from .purchase import (
    PurchaseStatus,
    PurchaseEvent,
    Product,
    PurchaseUpdateStatus,
    PurchaseUpdate,
)

__all__ = [
    "PartOfSpeech",
    "FrequencyTag",
    "Variant",
    "Entry",
    "FavoriteLink",
    "EntitlementRecord",
    "Page",
    "validate_page",
    "PurchaseStatus",
    "PurchaseEvent",
    "Product",
    "PurchaseUpdateStatus",
    "PurchaseUpdate",
]
