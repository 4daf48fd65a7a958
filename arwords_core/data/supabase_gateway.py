# =============================================================================
# arwords_core/data/supabase_gateway.py
# Supabase-backed Remote Data Gateway
# =============================================================================
"""
SupabaseGateway - typed reads and writes against the hosted dictionary.

Features:
- One parameterized query builder for every entry read
- Full-table reads paginated past the 1000-row API limit
- Search pages with an exact total from a separate count query
- Favorites and entitlement profile writes with duplicate-key tolerance
- API and transport errors surface as NetworkFault
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from arwords_core.errors import DataValidationError, NetworkFault
from arwords_core.logging import get_logger
from arwords_core.models import (
    Entry,
    EntitlementRecord,
    FavoriteLink,
    Page,
    PartOfSpeech,
    validate_page,
)

logger = get_logger(__name__)

WORDS_TABLE = "words"
FAVORITES_TABLE = "user_favorite_words"
PROFILES_TABLE = "user_profiles"

ENTRY_COLUMNS = (
    "id, english_term, primary_arabic_script, part_of_speech, "
    "english_definition, general_frequency_tag, "
    "word_forms(id, word_id, arabic_script_variant, transliteration, "
    "conjugation_details, audio_url, word_form_dialects(dialect_id))"
)

DUPLICATE_KEY = "23505"


def _quote_pattern(term: str) -> str:
    # LIKE wildcards are escaped first, then the value is quoted for the or= filter
    like = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    quoted = like.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{quoted}%"'


class SupabaseGateway:
    """
    Remote gateway over the Supabase async client.

    Usage:
        client = await create_supabase_client(settings)
        gateway = SupabaseGateway(client)
        page = await gateway.search_entries("book", page=1, page_size=20)
    """

    FETCH_BATCH_SIZE = 1000     # Supabase default max rows per request

    def __init__(self, client: AsyncClient):
        self.client = client

    # =========================================================================
    # QUERY PLUMBING
    # =========================================================================

    async def _execute(self, query, operation: str, tolerate_duplicate: bool = False):
        try:
            return await query.execute()
        except APIError as e:
            if tolerate_duplicate and str(e.code) == DUPLICATE_KEY:
                logger.debug(f"{operation}: row already exists")
                return None
            raise NetworkFault(
                f"Remote request failed: {e.message}",
                operation=operation,
                status=str(e.code) if e.code else None,
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise NetworkFault(f"Remote unreachable: {e}", operation=operation) from e

    def _entries_query(
        self,
        columns: str = ENTRY_COLUMNS,
        term: Optional[str] = None,
        category: Optional[PartOfSpeech] = None,
        ids: Optional[List[str]] = None,
        count: Optional[str] = None,
    ):
        """Build a `words` select with the shared filters applied."""
        if count:
            query = self.client.table(WORDS_TABLE).select(columns, count=count)
        else:
            query = self.client.table(WORDS_TABLE).select(columns)
        if term:
            pattern = _quote_pattern(term)
            query = query.or_(
                f"english_term.ilike.{pattern},primary_arabic_script.ilike.{pattern}"
            )
        if category is not None:
            query = query.eq("part_of_speech", PartOfSpeech.parse(category).value)
        if ids is not None:
            query = query.in_("id", ids)
        return query

    @staticmethod
    def _to_entries(rows: List[Dict[str, Any]], operation: str) -> List[Entry]:
        try:
            return [Entry.from_remote(row) for row in rows]
        except DataValidationError as e:
            raise NetworkFault(
                f"Remote returned malformed entry data: {e.message}",
                operation=operation,
                details=dict(e.details),
            ) from e

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def ping(self) -> bool:
        """True when the words table answers a one-row select."""
        try:
            await self._execute(
                self.client.table(WORDS_TABLE).select("id").limit(1),
                operation="ping",
            )
            return True
        except NetworkFault as e:
            logger.debug(f"Ping failed: {e}")
            return False

    # =========================================================================
    # ENTRIES
    # =========================================================================

    async def fetch_all_entries(self) -> List[Entry]:
        """
        Fetch every entry with nested variants (handles the 1000 row limit).

        Uses pagination to fetch all records when the table has more than
        1000 rows.
        """
        all_rows: List[Dict[str, Any]] = []
        offset = 0

        while True:
            query = (
                self._entries_query()
                .order("id")
                .range(offset, offset + self.FETCH_BATCH_SIZE - 1)
            )
            response = await self._execute(query, operation="fetch_all_entries")

            if not response.data:
                break
            all_rows.extend(response.data)
            # Fewer than a full page means we've reached the end
            if len(response.data) < self.FETCH_BATCH_SIZE:
                break
            offset += self.FETCH_BATCH_SIZE

        logger.info(f"Fetched {len(all_rows)} entries from {WORDS_TABLE}")
        return self._to_entries(all_rows, "fetch_all_entries")

    async def search_entries(
        self,
        term: str,
        page: int,
        page_size: int,
        category: Optional[PartOfSpeech] = None,
    ) -> Page[Entry]:
        """Case-insensitive substring search on term or script, one page at a time."""
        offset = validate_page(page, page_size)
        term = term.strip()
        if not term:
            return Page.empty(page, page_size)

        rows_query = (
            self._entries_query(term=term, category=category)
            .order("english_term")
            .range(offset, offset + page_size - 1)
        )
        rows = await self._execute(rows_query, operation="search_entries")

        count_query = self._entries_query(
            columns="id",
            term=term,
            category=category,
            count="exact",
        ).limit(1)
        counted = await self._execute(count_query, operation="count_entries")

        items = self._to_entries(rows.data or [], "search_entries")
        total = counted.count if counted.count is not None else len(items)
        return Page(items=tuple(items), page=page, page_size=page_size, total=total)

    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        response = await self._execute(
            self._entries_query(ids=[entry_id]).limit(1),
            operation="get_entry",
        )
        entries = self._to_entries(response.data or [], "get_entry")
        return entries[0] if entries else None

    # =========================================================================
    # FAVORITES
    # =========================================================================

    async def fetch_favorite_ids(self, user_id: str) -> Set[str]:
        response = await self._execute(
            self.client.table(FAVORITES_TABLE).select("word_id").eq("user_id", user_id),
            operation="fetch_favorite_ids",
        )
        return {str(row["word_id"]) for row in response.data or []}

    async def list_favorite_entries(self, user_id: str) -> List[Entry]:
        ids = sorted(await self.fetch_favorite_ids(user_id))
        if not ids:
            return []
        response = await self._execute(
            self._entries_query(ids=ids).order("english_term"),
            operation="list_favorite_entries",
        )
        return [
            entry.with_favorite(True)
            for entry in self._to_entries(response.data or [], "list_favorite_entries")
        ]

    async def is_favorite(self, user_id: str, entry_id: str) -> bool:
        response = await self._execute(
            self.client.table(FAVORITES_TABLE)
            .select("word_id")
            .eq("user_id", user_id)
            .eq("word_id", entry_id)
            .limit(1),
            operation="is_favorite",
        )
        return bool(response.data)

    async def add_favorite(self, user_id: str, entry_id: str) -> None:
        """Insert the link unless it already exists."""
        if await self.is_favorite(user_id, entry_id):
            logger.debug(f"Entry {entry_id} already favorited")
            return
        await self._execute(
            self.client.table(FAVORITES_TABLE)
            .insert(FavoriteLink(user_id, entry_id).to_remote()),
            operation="add_favorite",
            tolerate_duplicate=True,
        )

    async def remove_favorite(self, user_id: str, entry_id: str) -> None:
        await self._execute(
            self.client.table(FAVORITES_TABLE)
            .delete()
            .match({"user_id": user_id, "word_id": entry_id}),
            operation="remove_favorite",
        )

    # =========================================================================
    # ENTITLEMENT PROFILE
    # =========================================================================

    async def fetch_entitlement(self, user_id: str) -> Optional[EntitlementRecord]:
        response = await self._execute(
            self.client.table(PROFILES_TABLE)
            .select("user_id, has_offline_dictionary_access, subscription_valid_until")
            .eq("user_id", user_id)
            .limit(1),
            operation="fetch_entitlement",
        )
        if not response.data:
            return None
        try:
            return EntitlementRecord.from_remote(response.data[0])
        except DataValidationError as e:
            raise NetworkFault(
                f"Remote returned malformed profile: {e.message}",
                operation="fetch_entitlement",
            ) from e

    async def grant_entitlement(self, user_id: str) -> EntitlementRecord:
        """Set the access flag, inserting the profile row when none exists."""
        now = datetime.now(timezone.utc).isoformat()
        response = await self._execute(
            self.client.table(PROFILES_TABLE)
            .update({"has_offline_dictionary_access": True, "updated_at": now})
            .eq("user_id", user_id),
            operation="grant_entitlement",
        )
        if not response.data:
            await self._execute(
                self.client.table(PROFILES_TABLE).insert({
                    "user_id": user_id,
                    "has_offline_dictionary_access": True,
                    "created_at": now,
                    "updated_at": now,
                }),
                operation="grant_entitlement",
                tolerate_duplicate=True,
            )
        logger.info(f"Granted offline access to user {user_id}")
        return EntitlementRecord(
            user_id=user_id,
            has_access=True,
            last_synced=datetime.now(timezone.utc),
        )

    async def create_entitlement(self, user_id: str, has_access: bool = False) -> EntitlementRecord:
        now = datetime.now(timezone.utc).isoformat()
        await self._execute(
            self.client.table(PROFILES_TABLE).insert({
                "user_id": user_id,
                "has_offline_dictionary_access": has_access,
                "created_at": now,
                "updated_at": now,
            }),
            operation="create_entitlement",
            tolerate_duplicate=True,
        )
        return EntitlementRecord(
            user_id=user_id,
            has_access=has_access,
            last_synced=datetime.now(timezone.utc),
        )

    async def delete_entitlement(self, user_id: str) -> None:
        await self._execute(
            self.client.table(PROFILES_TABLE).delete().eq("user_id", user_id),
            operation="delete_entitlement",
        )
