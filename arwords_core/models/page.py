# =============================================================================
# arwords_core/models/page.py
# Paginated Query Results
# =============================================================================

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Generic, Sequence, Tuple, TypeVar

T = TypeVar("T")


def validate_page(page: int, page_size: int) -> int:
    """Return the 0-based offset for a 1-indexed page."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return (page - 1) * page_size


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the exact total across all pages."""
    items: Tuple[T, ...]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @classmethod
    def empty(cls, page: int = 1, page_size: int = 20) -> Page[T]:
        return cls(items=(), page=page, page_size=page_size, total=0)

    @classmethod
    def slice(cls, items: Sequence[T], page: int, page_size: int) -> Page[T]:
        """Paginate an in-memory result set."""
        offset = validate_page(page, page_size)
        return cls(
            items=tuple(items[offset:offset + page_size]),
            page=page,
            page_size=page_size,
            total=len(items),
        )
