# =============================================================================
# arwords_core/data/gateway.py
# Remote Data Gateway Contract
# =============================================================================

from __future__ import annotations
from typing import List, Optional, Protocol, Set, runtime_checkable

from arwords_core.models import Entry, EntitlementRecord, Page, PartOfSpeech


@runtime_checkable
class RemoteGateway(Protocol):
    """
    Typed access to the remote store.

    Implementations raise NetworkFault for transport and API failures and
    return typed records only.
    """

    async def ping(self) -> bool: ...

    async def fetch_all_entries(self) -> List[Entry]: ...

    async def search_entries(
        self,
        term: str,
        page: int,
        page_size: int,
        category: Optional[PartOfSpeech] = None,
    ) -> Page[Entry]: ...

    async def get_entry(self, entry_id: str) -> Optional[Entry]: ...

    async def fetch_favorite_ids(self, user_id: str) -> Set[str]: ...

    async def list_favorite_entries(self, user_id: str) -> List[Entry]: ...

    async def is_favorite(self, user_id: str, entry_id: str) -> bool: ...

    async def add_favorite(self, user_id: str, entry_id: str) -> None: ...

    async def remove_favorite(self, user_id: str, entry_id: str) -> None: ...

    async def fetch_entitlement(self, user_id: str) -> Optional[EntitlementRecord]: ...

    async def grant_entitlement(self, user_id: str) -> EntitlementRecord: ...

    async def create_entitlement(self, user_id: str, has_access: bool = False) -> EntitlementRecord: ...

    async def delete_entitlement(self, user_id: str) -> None: ...
