# =============================================================================
# arwords_core/models/purchase.py
# Billing Platform Records
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PurchaseStatus(Enum):
    """Status reported by the platform store for a purchase event."""
    PENDING = "pending"
    PURCHASED = "purchased"
    RESTORED = "restored"
    ERROR = "error"
    CANCELED = "canceled"


@dataclass(frozen=True)
class PurchaseEvent:
    """One event from the platform store's purchase stream."""
    product_id: str
    status: PurchaseStatus
    purchase_token: Optional[str] = None
    verification_data: Optional[str] = None
    pending_complete: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class Product:
    """A purchasable product as described by the platform store."""
    id: str
    title: str
    description: str = ""
    price: str = ""


class PurchaseUpdateStatus(Enum):
    """Status emitted to purchase listeners."""
    PENDING = "pending"
    PURCHASED = "purchased"
    ERROR = "error"


@dataclass(frozen=True)
class PurchaseUpdate:
    status: PurchaseUpdateStatus
    message: Optional[str] = None
    error_code: Optional[str] = None
