# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from arwords_core.auth.identity import AuthSession
from arwords_core.errors import AuthenticationError, NetworkFault
from arwords_core.models import (
    Entry,
    EntitlementRecord,
    FrequencyTag,
    Page,
    PartOfSpeech,
    Product,
    PurchaseEvent,
    Variant,
)
from arwords_core.offline.connection_manager import ConnectionManager, ConnectivityState
from arwords_core.offline.entitlement_cache import EntitlementCache
from arwords_core.offline.favorites import FavoritesReconciler
from arwords_core.offline.local_store import LocalStore
from arwords_core.offline.preferences import PreferenceStore
from arwords_core.offline.query_router import QueryRouter
from arwords_core.offline.sync_engine import ContentSyncEngine


USER_ID = "user-1"


# =============================================================================
# SAMPLE DATA
# =============================================================================

def make_entry(
    entry_id: str,
    term: str,
    script: str,
    category: PartOfSpeech = PartOfSpeech.NOUN,
    frequency: FrequencyTag = FrequencyTag.COMMON,
    transliteration: str = "x",
    variant_script: Optional[str] = None,
) -> Entry:
    return Entry(
        id=entry_id,
        term=term,
        script=script,
        category=category,
        definition=f"Definition of {term}",
        frequency=frequency,
        variants=(
            Variant(
                id=f"{entry_id}-form-1",
                entry_id=entry_id,
                transliteration=transliteration,
                detail="{}",
                script_variant=variant_script or script,
            ),
        ),
    )


def seed_entries() -> List[Entry]:
    """The three-word fixture dictionary."""
    return [
        make_entry("w-hello", "hello", "مرحبا", PartOfSpeech.INTERJECTION,
                   FrequencyTag.VERY_FREQUENT, "marhaba", "مرحبا"),
        make_entry("w-book", "book", "كتاب", PartOfSpeech.NOUN,
                   FrequencyTag.COMMON, "kitab", "كتاب"),
        make_entry("w-write", "to write", "كتب", PartOfSpeech.VERB,
                   FrequencyTag.FREQUENT, "kataba", "كَتَبَ"),
    ]


def many_entries(count: int) -> List[Entry]:
    return [
        make_entry(f"w-{i:05d}", f"term {i:05d}", f"كلمة{i}", transliteration=f"kalima{i}")
        for i in range(count)
    ]


@pytest.fixture
def sample_entries():
    return seed_entries()


# =============================================================================
# TEST DOUBLES
# =============================================================================

class FakeGateway:
    """In-memory RemoteGateway."""

    def __init__(self, entries: Optional[List[Entry]] = None):
        self.entries: Dict[str, Entry] = {e.id: e for e in entries or []}
        self.favorites: Set[Tuple[str, str]] = set()
        self.profiles: Dict[str, EntitlementRecord] = {}
        self.online = True
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if not self.online:
            raise NetworkFault("connection refused", operation=name)
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self) -> bool:
        return self.online

    async def fetch_all_entries(self) -> List[Entry]:
        self._check("fetch_all_entries")
        return sorted(self.entries.values(), key=lambda e: e.id)

    async def search_entries(self, term, page, page_size, category=None) -> Page:
        self._check("search_entries")
        needle = term.strip().lower()
        matches = [
            e for e in self.entries.values()
            if (needle in e.term.lower() or needle in e.script)
            and (category is None or e.category == category)
        ]
        matches.sort(key=lambda e: e.term.lower())
        return Page.slice(matches, page, page_size)

    async def get_entry(self, entry_id):
        self._check("get_entry")
        return self.entries.get(entry_id)

    async def fetch_favorite_ids(self, user_id):
        self._check("fetch_favorite_ids")
        return {entry_id for uid, entry_id in self.favorites if uid == user_id}

    async def list_favorite_entries(self, user_id):
        self._check("list_favorite_entries")
        ids = {entry_id for uid, entry_id in self.favorites if uid == user_id}
        return sorted(
            (self.entries[i].with_favorite(True) for i in ids if i in self.entries),
            key=lambda e: e.term.lower(),
        )

    async def is_favorite(self, user_id, entry_id):
        self._check("is_favorite")
        return (user_id, entry_id) in self.favorites

    async def add_favorite(self, user_id, entry_id):
        self._check("add_favorite")
        self.favorites.add((user_id, entry_id))

    async def remove_favorite(self, user_id, entry_id):
        self._check("remove_favorite")
        self.favorites.discard((user_id, entry_id))

    async def fetch_entitlement(self, user_id):
        self._check("fetch_entitlement")
        return self.profiles.get(user_id)

    async def grant_entitlement(self, user_id):
        self._check("grant_entitlement")
        record = EntitlementRecord(user_id=user_id, has_access=True,
                                   last_synced=datetime.now(timezone.utc))
        self.profiles[user_id] = record
        return record

    async def create_entitlement(self, user_id, has_access=False):
        self._check("create_entitlement")
        record = self.profiles.setdefault(
            user_id, EntitlementRecord(user_id=user_id, has_access=has_access)
        )
        return record

    async def delete_entitlement(self, user_id):
        self._check("delete_entitlement")
        self.profiles.pop(user_id, None)


class FakeIdentity:
    """IdentityProvider with a settable current user."""

    def __init__(self, user_id: Optional[str] = USER_ID):
        self.user_id = user_id
        self.deleted: List[str] = []
        self.sign_out_error: Optional[Exception] = None

    async def current_user_id(self):
        return self.user_id

    async def sign_in(self, email, password):
        if password == "wrong":
            raise AuthenticationError("Sign-in failed: invalid credentials")
        self.user_id = f"user-{email.split('@')[0]}"
        return AuthSession(user_id=self.user_id, email=email)

    async def sign_up(self, email, password):
        self.user_id = f"user-{email.split('@')[0]}"
        return AuthSession(user_id=self.user_id, email=email)

    async def sign_out(self):
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.user_id = None

    async def delete_account(self, user_id):
        self.deleted.append(user_id)
        self.user_id = None


class FakeBilling:
    """BillingPlatform replaying a fixed list of purchase events."""

    def __init__(self, product: Optional[Product] = None, available: bool = True):
        self.product = product or Product(id="premium_access", title="Premium", price="$4.99")
        self.available = available
        self.events: List[PurchaseEvent] = []
        self.purchased: List[Product] = []
        self.consumed: List[PurchaseEvent] = []
        self.completed: List[PurchaseEvent] = []
        self.restored = 0
        self.delay = 0.0

    async def is_available(self):
        await asyncio.sleep(self.delay)
        return self.available

    async def query_product(self, product_id):
        await asyncio.sleep(self.delay)
        return self.product if self.product and self.product.id == product_id else None

    async def purchase(self, product):
        self.purchased.append(product)
        return True

    async def purchase_events(self):
        for event in self.events:
            yield event

    async def consume(self, event):
        self.consumed.append(event)

    async def complete_purchase(self, event):
        self.completed.append(event)

    async def restore_purchases(self):
        await asyncio.sleep(self.delay)
        self.restored += 1


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def gateway(sample_entries):
    return FakeGateway(sample_entries)


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def store(tmp_path):
    local = LocalStore(tmp_path / "arwords.db")
    yield local
    asyncio.run(local.close())


@pytest.fixture
def preferences(tmp_path):
    return PreferenceStore(tmp_path / "preferences.json")


@pytest.fixture
def connectivity(gateway):
    manager = ConnectionManager(probe=gateway.ping, check_internet=False)
    manager.force_state(ConnectivityState.ONLINE)
    return manager


@pytest.fixture
def entitlements(identity, store, preferences, gateway, connectivity):
    return EntitlementCache(identity, store, preferences, gateway, connectivity)


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def sync_engine(identity, store, gateway, entitlements, connectivity, notifier):
    return ContentSyncEngine(identity, store, gateway, entitlements, connectivity, notifier=notifier)


@pytest.fixture
def router(identity, store, gateway, entitlements, connectivity, notifier):
    return QueryRouter(identity, store, gateway, entitlements, connectivity, notifier=notifier)


@pytest.fixture
def favorites(identity, store, gateway, entitlements, connectivity):
    return FavoritesReconciler(identity, store, gateway, entitlements, connectivity)


@pytest.fixture
def premium_user(gateway):
    """Remote profile granting offline access to the current user."""
    gateway.profiles[USER_ID] = EntitlementRecord(user_id=USER_ID, has_access=True)
    return USER_ID


@pytest.fixture
def billing():
    return FakeBilling()


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Mock async Supabase client; every query chain ends in an awaitable execute()."""
    from unittest.mock import AsyncMock

    mock_client = MagicMock()
    query = MagicMock()
    for method in ("select", "eq", "in_", "or_", "order", "range", "limit",
                   "insert", "update", "delete", "match"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=MagicMock(data=[], count=0))
    mock_client.table.return_value = query
    return mock_client
